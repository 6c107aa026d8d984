"""Tests for settings-tree flattening and address resolution."""
from cutler.config_engine.flatten import (
    effective,
    flatten_domains,
    iter_settings,
    needs_prefix,
    prefixed_domain,
)


class TestFlattenDomains:
    """Tests for flatten_domains."""

    def test_single_domain(self):
        """A table of scalars becomes one domain."""
        tree = {"dock": {"tilesize": 50, "autohide": True}}

        assert flatten_domains(tree) == [
            ("dock", {"tilesize": 50, "autohide": True}),
        ]

    def test_nested_domain_names_are_dot_joined(self):
        """Nested tables extend the domain name."""
        tree = {"menuextra": {"clock": {"FlashDateSeparators": True}}}

        assert flatten_domains(tree) == [
            ("menuextra.clock", {"FlashDateSeparators": True}),
        ]

    def test_scalars_emitted_before_nested_tables(self):
        """A node's own settings come before those of its children."""
        tree = {
            "finder": {
                "advanced": {"ShowPathbar": True},
                "AppleShowAllFiles": True,
            }
        }

        result = flatten_domains(tree)

        assert [domain for domain, _ in result] == ["finder", "finder.advanced"]
        assert result[0][1] == {"AppleShowAllFiles": True}

    def test_tables_without_scalars_produce_nothing(self):
        """Empty tables and pure containers yield no pair."""
        tree = {"empty": {}, "outer": {"inner": {}}}

        assert flatten_domains(tree) == []

    def test_root_scalars_have_empty_domain(self):
        """Scalars directly under [set] are reported under ''."""
        result = flatten_domains({"stray": 1})

        assert result == [("", {"stray": 1})]

    def test_order_is_deterministic(self):
        """The same tree always flattens the same way."""
        tree = {"b": {"x": 1}, "a": {"y": 2}}

        assert flatten_domains(tree) == flatten_domains(tree)
        assert [d for d, _ in flatten_domains(tree)] == ["b", "a"]

    def test_iter_settings(self):
        """iter_settings yields (domain, key, value) triples."""
        tree = {"dock": {"tilesize": 50}, "NSGlobalDomain": {"KeyRepeat": 2}}

        assert list(iter_settings(tree)) == [
            ("dock", "tilesize", 50),
            ("NSGlobalDomain", "KeyRepeat", 2),
        ]


class TestEffectiveAddress:
    """Tests for effective (domain, key) resolution."""

    def test_global_domain(self):
        assert effective("NSGlobalDomain", "KeyRepeat") == ("NSGlobalDomain", "KeyRepeat")

    def test_global_subdomain_moves_into_key(self):
        """NSGlobalDomain.x.y keys live in the global domain as x.y.key."""
        assert effective("NSGlobalDomain.com.apple.mouse", "linear") == (
            "NSGlobalDomain",
            "com.apple.mouse.linear",
        )

    def test_global_domain_with_trailing_dot(self):
        """An empty remainder behaves like the bare global domain."""
        assert effective("NSGlobalDomain.", "KeyRepeat") == ("NSGlobalDomain", "KeyRepeat")

    def test_app_domain_gets_apple_prefix(self):
        assert effective("dock", "tilesize") == ("com.apple.dock", "tilesize")

    def test_nested_app_domain(self):
        assert effective("menuextra.clock", "IsAnalog") == (
            "com.apple.menuextra.clock",
            "IsAnalog",
        )


class TestNeedsPrefix:
    """Tests for needs_prefix and prefixed_domain."""

    def test_needs_prefix(self):
        assert needs_prefix("dock")
        assert needs_prefix("finder")
        assert not needs_prefix("NSGlobalDomain")
        assert not needs_prefix("NSGlobalDomain.something")

    def test_prefixed_domain(self):
        assert prefixed_domain("dock") == "com.apple.dock"
