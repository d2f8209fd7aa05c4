"""Tests for config text conversion, hashing, diffing and block splitting."""
from mcp_arista_switch.config_engine import (
    change_summary,
    compute_config_hash,
    config_commands,
    diff_lines,
    extract_config_text,
    split_config_blocks,
    structured_to_text,
)


class TestStructuredToText:
    """Tests for rendering `show running-config` JSON as CLI text."""

    def test_nested_commands_and_separators(self):
        """Children are indented 3 spaces per level and closed with '!'."""
        tree = {
            "header": ["! device: leaf-1", "  "],
            "cmds": {
                "hostname leaf-1": None,
                "interface Ethernet1": {
                    "cmds": {
                        "description uplink": None,
                        "switchport mode trunk": None,
                    },
                    "comments": [],
                },
                "router bgp 65000": {
                    "cmds": {
                        "neighbor 10.0.0.1 remote-as 65001": None,
                        "address-family ipv4": {
                            "cmds": {"neighbor 10.0.0.1 activate": None},
                        },
                    },
                },
            },
        }

        text = structured_to_text(tree)

        assert text == "\n".join([
            "! device: leaf-1",
            "hostname leaf-1",
            "!",
            "interface Ethernet1",
            "   description uplink",
            "   switchport mode trunk",
            "!",
            "router bgp 65000",
            "   neighbor 10.0.0.1 remote-as 65001",
            "   address-family ipv4",
            "      neighbor 10.0.0.1 activate",
            "!",
            "!",
            "end",
        ])

    def test_metadata_only_node_has_no_children(self):
        """A node holding only comments renders like a leaf."""
        tree = {"cmds": {"vlan 10": {"comments": ["managed"]}}}

        assert structured_to_text(tree) == "vlan 10\n!\nend"

    def test_end_not_duplicated(self):
        """An existing trailing 'end' is kept once."""
        tree = {"header": ["hostname x", "end"]}

        assert structured_to_text(tree) == "hostname x\nend"

    def test_empty_tree(self):
        """Nothing to render still yields 'end'."""
        assert structured_to_text({}) == "end"


class TestExtractConfigText:
    """Tests for pulling text out of differently shaped eAPI results."""

    def test_string_result(self):
        assert extract_config_text("hostname a\n") == "hostname a\n"

    def test_output_and_text_keys(self):
        assert extract_config_text({"output": "hostname a"}) == "hostname a"
        assert extract_config_text({"text": "hostname b"}) == "hostname b"

    def test_nested_result_output(self):
        assert extract_config_text({"result": {"output": "hostname c"}}) == "hostname c"

    def test_structured_tree(self):
        """A cmds tree is converted to text."""
        text = extract_config_text({"cmds": {"hostname d": None}})
        assert text == "hostname d\n!\nend"

    def test_unusable_result(self):
        assert extract_config_text(None) == ""
        assert extract_config_text({"foo": 1}) == ""
        assert extract_config_text([1, 2]) == ""


class TestConfigHash:
    """Tests for compute_config_hash."""

    def test_sha256_hex(self):
        digest = compute_config_hash("hostname leaf-1\n")
        assert len(digest) == 64
        assert digest == compute_config_hash("hostname leaf-1\n")

    def test_whitespace_matters(self):
        """Hashes are over the exact text."""
        assert compute_config_hash("hostname a") != compute_config_hash("hostname a\n")


class TestDiffLines:
    """Tests for the positional line diff."""

    def test_identical(self):
        result = diff_lines("a\nb", "a\nb")

        assert result.no_change
        assert result.stats == {"unchanged": 2, "added": 0, "removed": 0, "modified": 0}

    def test_modified_added_removed(self):
        """Lines are compared by position, not by content."""
        result = diff_lines("a\nb\nc", "a\nx")

        types = [e.type for e in result.entries]
        assert types == ["unchanged", "modified", "removed"]
        assert result.entries[1].old_line == "b"
        assert result.entries[1].new_line == "x"
        assert result.entries[2].line == "c"
        assert result.entries[2].line_number == 3

        longer = diff_lines("a", "a\nb")
        assert [e.type for e in longer.entries] == ["unchanged", "added"]
        assert longer.stats["added"] == 1

    def test_trimmed_comparison(self):
        """Indentation differences alone are not changes."""
        assert diff_lines("   description x", "description x").no_change

    def test_insertion_shifts_everything(self):
        """Inserting one line marks every following line as modified."""
        result = diff_lines("a\nb\nc", "new\na\nb\nc")

        assert result.stats["modified"] == 3
        assert result.stats["added"] == 1

    def test_swapping_arguments_mirrors_result(self):
        """Added and removed trade places; modified rows swap old and new."""
        a = "int e1\nvlan 10"
        b = "int e1\nvlan 20\nshutdown"

        forward = diff_lines(a, b)
        backward = diff_lines(b, a)

        assert [e.type for e in forward.entries] == ["unchanged", "modified", "added"]
        assert [e.type for e in backward.entries] == ["unchanged", "modified", "removed"]
        assert forward.stats["added"] == backward.stats["removed"] == 1
        assert forward.stats["removed"] == backward.stats["added"] == 0
        assert forward.stats["unchanged"] == backward.stats["unchanged"] == 1
        assert forward.stats["modified"] == backward.stats["modified"] == 1
        assert (forward.entries[1].old_line, forward.entries[1].new_line) == ("vlan 10", "vlan 20")
        assert (backward.entries[1].old_line, backward.entries[1].new_line) == ("vlan 20", "vlan 10")
        assert forward.entries[2].line == backward.entries[2].line == "shutdown"

    def test_to_dict_shape(self):
        data = diff_lines("a", "b").to_dict()

        assert data["diff"] == [
            {"type": "modified", "old_line": "a", "new_line": "b", "line_number": 1}
        ]
        assert data["stats"]["modified"] == 1


class TestChangeSummary:
    """Tests for the order-insensitive change summary."""

    def test_set_difference(self):
        old = "hostname a\nvlan 10\nvlan 20\n"
        new = "vlan 20\nhostname a\nvlan 30\n"

        summary = change_summary(old, new)

        assert summary.lines_added == 1
        assert summary.lines_removed == 1
        assert summary.total_lines_before == 3
        assert summary.total_lines_after == 3

    def test_sizes_in_bytes(self):
        summary = change_summary(None, "description café")

        assert summary.size_before == 0
        assert summary.size_after == len("description café".encode("utf-8"))
        assert summary.lines_added == 1


class TestConfigCommands:
    """Tests for stripping a config down to commands."""

    def test_drops_comments_and_blanks(self):
        text = "! comment\n# other\n\nhostname a\n   description x  \n"

        assert config_commands(text) == ["hostname a", "description x"]


class TestSplitConfigBlocks:
    """Tests for grouping text into replayable blocks."""

    def test_top_level_blocks(self):
        text = "hostname a\n!\ninterface Ethernet1\n   description x\n   shutdown\n!\nend\n"

        blocks = split_config_blocks(text)

        assert [b.header for b in blocks] == ["hostname a", "interface Ethernet1"]
        assert blocks[0].commands == []
        assert blocks[1].commands == ["description x", "shutdown"]

    def test_exit_inserted_when_leaving_nested_mode(self):
        text = (
            "router bgp 65000\n"
            "   neighbor 10.0.0.1 remote-as 65001\n"
            "   address-family ipv4\n"
            "      neighbor 10.0.0.1 activate\n"
            "   router-id 10.0.0.254\n"
        )

        blocks = split_config_blocks(text)

        assert len(blocks) == 1
        assert blocks[0].commands == [
            "neighbor 10.0.0.1 remote-as 65001",
            "address-family ipv4",
            "neighbor 10.0.0.1 activate",
            "exit",
            "router-id 10.0.0.254",
        ]

    def test_no_exit_at_block_end(self):
        """Leaving a nested mode by starting a new top-level block needs no exit."""
        text = "router bgp 1\n   address-family ipv4\n      network 10.0.0.0/8\nhostname a\n"

        blocks = split_config_blocks(text)

        assert blocks[0].commands == ["address-family ipv4", "network 10.0.0.0/8"]
        assert blocks[1].header == "hostname a"

    def test_contexts_track_nested_modes(self):
        text = (
            "router bgp 65000\n"
            "   address-family ipv4\n"
            "      network 10.1.0.0/16\n"
            "      network 10.2.0.0/16\n"
            "   neighbor 10.0.0.2 remote-as 65002\n"
        )

        block = split_config_blocks(text)[0]

        assert block.commands == [
            "address-family ipv4",
            "network 10.1.0.0/16",
            "network 10.2.0.0/16",
            "exit",
            "neighbor 10.0.0.2 remote-as 65002",
        ]
        assert block.contexts == [
            (),
            ("address-family ipv4",),
            ("address-family ipv4",),
            ("address-family ipv4",),
            (),
        ]
        assert block.mode_path(2) == ["router bgp 65000", "address-family ipv4"]
        assert block.mode_path(4) == ["router bgp 65000"]
