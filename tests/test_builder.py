"""Tests for ConfigurationBuilder: query, add, remove, merge, materialize."""

from cloudext.extensions.builder import ConfigurationBuilder
from cloudext.extensions.models import ExtensionConfiguration, ExtensionInstance

NS_A, TYPE_X = "NsA", "TypeX"
NS_B, TYPE_Y = "NsB", "TypeY"


def _lookup(*instances: ExtensionInstance):
    by_id = {i.id: i for i in instances}
    return by_id.get


def _ext(ext_id: str, ns: str = NS_A, type_: str = TYPE_X) -> ExtensionInstance:
    return ExtensionInstance(id=ext_id, provider_namespace=ns, type=type_)


class TestQueries:
    """exist_any / exist / exist_default / exist_type."""

    def test_empty_builder(self) -> None:
        b = ConfigurationBuilder()
        assert b.exist_any("x") is False
        assert b.exist([], NS_A, TYPE_X) is False
        assert b.to_configuration() == ExtensionConfiguration()

    def test_exist_any_sees_default_and_named(self) -> None:
        config = ExtensionConfiguration(default=["d1"], named_roles={"Web": ["w1"]})
        b = ConfigurationBuilder(config)
        assert b.exist_any("d1")
        assert b.exist_any("w1")
        assert not b.exist_any("other")

    def test_exist_with_empty_roles_means_default(self) -> None:
        lookup = _lookup(_ext("d1"), _ext("w1"))
        b = ConfigurationBuilder(
            ExtensionConfiguration(default=["d1"], named_roles={"Web": ["w1"]}), lookup
        )
        assert b.exist([], NS_A, TYPE_X)
        assert b.exist(None, NS_A, TYPE_X)
        assert b.exist_default(NS_A, TYPE_X)
        assert b.exist(["Web"], NS_A, TYPE_X)
        assert not b.exist(["Worker"], NS_A, TYPE_X)
        assert not b.exist(["Web"], NS_B, TYPE_Y)

    def test_named_role_does_not_inherit_default(self) -> None:
        b = ConfigurationBuilder(ExtensionConfiguration(default=["d1"]), _lookup(_ext("d1")))
        assert b.exist_default(NS_A, TYPE_X)
        assert not b.exist(["Web"], NS_A, TYPE_X)

    def test_unknown_instance_never_matches_type(self) -> None:
        b = ConfigurationBuilder(ExtensionConfiguration(default=["ghost"]), _lookup())
        assert b.exist_any("ghost")
        assert not b.exist_default(NS_A, TYPE_X)
        assert not b.exist_type(NS_A, TYPE_X)

    def test_exist_type_checks_every_bucket(self) -> None:
        b = ConfigurationBuilder(
            ExtensionConfiguration(named_roles={"Worker": ["y1"]}),
            _lookup(_ext("y1", NS_B, TYPE_Y)),
        )
        assert b.exist_type(NS_B, TYPE_Y)
        assert not b.exist_type(NS_A, TYPE_X)


class TestMutation:
    """add / remove / remove_any."""

    def test_add_creates_role_bucket_and_skips_duplicates(self) -> None:
        b = ConfigurationBuilder()
        b.add("Role1", "id1")
        b.add("Role1", "id1")
        b.add_default("d1")
        b.add_default("d1")
        config = b.to_configuration()
        assert config.named_roles == {"Role1": ["id1"]}
        assert config.default == ["d1"]

    def test_add_then_remove_round_trip(self) -> None:
        b = ConfigurationBuilder(lookup=_lookup(_ext("id1")))
        b.add("Role1", "id1")
        b.remove(["Role1"], NS_A, TYPE_X)
        assert b.exist_any("id1") is False
        assert b.to_configuration().named_roles == {}

    def test_remove_only_touches_matching_type(self) -> None:
        lookup = _lookup(_ext("x1"), _ext("y1", NS_B, TYPE_Y))
        b = ConfigurationBuilder(
            ExtensionConfiguration(named_roles={"Web": ["x1", "y1"]}), lookup
        )
        b.remove(["Web"], NS_A, TYPE_X)
        assert b.to_configuration().named_roles == {"Web": ["y1"]}

    def test_remove_with_no_roles_targets_default_only(self) -> None:
        lookup = _lookup(_ext("d1"), _ext("w1"))
        b = ConfigurationBuilder(
            ExtensionConfiguration(default=["d1"], named_roles={"Web": ["w1"]}), lookup
        )
        b.remove([], NS_A, TYPE_X)
        config = b.to_configuration()
        assert config.default == []
        assert config.named_roles == {"Web": ["w1"]}

    def test_remove_supplied_roles_leaves_others(self) -> None:
        lookup = _lookup(_ext("w1"), _ext("k1"))
        b = ConfigurationBuilder(
            ExtensionConfiguration(named_roles={"Web": ["w1"], "Worker": ["k1"]}), lookup
        )
        b.remove(["Web"], NS_A, TYPE_X)
        assert b.to_configuration().named_roles == {"Worker": ["k1"]}

    def test_remove_any_strips_every_role(self) -> None:
        lookup = _lookup(_ext("d1"), _ext("w1"), _ext("k1"), _ext("y1", NS_B, TYPE_Y))
        b = ConfigurationBuilder(
            ExtensionConfiguration(
                default=["d1", "y1"], named_roles={"Web": ["w1"], "Worker": ["k1"]}
            ),
            lookup,
        )
        b.remove_any(NS_A, TYPE_X)
        config = b.to_configuration()
        assert config.default == ["y1"]
        assert config.named_roles == {}


class TestMergeAndMaterialize:
    """merge() unions; to_configuration() hands out an independent copy."""

    def test_merge_unions_assignments(self) -> None:
        b = ConfigurationBuilder(ExtensionConfiguration(default=["a"], named_roles={"Web": ["w"]}))
        b.merge(ExtensionConfiguration(default=["a", "b"], named_roles={"Web": ["w2"], "Job": ["j"]}))
        b.merge(None)
        config = b.to_configuration()
        assert config.default == ["a", "b"]
        assert config.named_roles == {"Web": ["w", "w2"], "Job": ["j"]}

    def test_to_configuration_is_a_copy(self) -> None:
        source = ExtensionConfiguration(default=["a"])
        b = ConfigurationBuilder(source)
        config = b.to_configuration()
        config.default.append("mutated")
        b.add_default("b")
        assert source.default == ["a"]
        assert b.to_configuration().default == ["a", "b"]
