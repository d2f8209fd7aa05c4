"""Tests for configuration syntax validation."""
from mcp_arista_switch.config_engine import ConfigValidator, validate_syntax


VALID_CONFIG = """hostname leaf-1
!
vlan 10
   name servers
!
interface Ethernet1
   switchport access vlan 10
"""


class TestValidateSyntax:
    """Tests for validate_syntax."""

    def test_empty_config(self):
        """Empty or whitespace-only input is an error."""
        for text in ("", "   \n\n"):
            result = validate_syntax(text)
            assert not result.valid
            assert result.errors == ["Configuration is empty"]

    def test_valid_config(self):
        result = validate_syntax("hostname a\nvlan 10\n   name x\nvlan 20\n")

        assert result.valid
        assert result.errors == []

    def test_too_few_commands(self):
        """Comments do not count towards the minimum."""
        result = validate_syntax("! comment\nhostname a\n# note\nvlan 10\n")

        assert not result.valid
        assert result.errors == [
            "Configuration has insufficient valid commands (found 2, need at least 3)"
        ]

    def test_suspicious_lines_are_warnings(self):
        """Unusual lines warn with their line number but do not fail."""
        text = "hostname a\n{ weird: true }\nvlan 10\nvlan 20\n"

        result = validate_syntax(text)

        assert result.valid
        assert result.warnings == ["Line 2: Suspicious syntax: { weird: true }"]

    def test_suspicious_text_truncated(self):
        text = "hostname a\nvlan 1\nvlan 2\n@" + "x" * 80

        result = validate_syntax(text)

        assert result.warnings[0] == f"Line 4: Suspicious syntax: @{'x' * 49}"

    def test_unclosed_block_warning(self):
        """Ending inside an indented block gives a warning only."""
        result = validate_syntax(VALID_CONFIG)

        assert result.valid
        assert "Configuration may have unclosed blocks" in result.warnings

    def test_closed_block_no_warning(self):
        text = "interface Ethernet1\n   shutdown\nhostname a\nvlan 10\n"

        result = validate_syntax(text)

        assert result.valid
        assert result.warnings == []


class TestConfigValidator:
    """Tests for the size-limited validator."""

    def test_size_limit(self):
        validator = ConfigValidator(max_size=20)

        result = validator.validate("hostname a\nvlan 10\nvlan 20\nvlan 30\n")

        assert not result.valid
        assert any(e.startswith("Configuration too large") for e in result.errors)

    def test_within_limit(self):
        assert ConfigValidator().validate(VALID_CONFIG).valid
