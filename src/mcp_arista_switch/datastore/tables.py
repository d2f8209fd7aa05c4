"""Fixed relational schema for the switch console.

Bump SCHEMA_VERSION when columns change; the store refuses to guess which
optional columns exist.
"""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

SCHEMA_VERSION = 2

metadata = MetaData()

switches = Table(
    "switches",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("hostname", String(253), nullable=False, unique=True),
    Column("ip_address", String(45), nullable=False),
    Column("model", String(100)),
    Column("location", String(255)),
    Column("status", String(16), default="unknown"),
    Column("firmware_version", String(64)),
    Column("environment_alert", Boolean),
    Column("last_seen", DateTime),
    Column("last_polled", DateTime),
    Column("last_error", Text),
    Column("created_at", DateTime),
)

switch_credentials = Table(
    "switch_credentials",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "switch_id",
        Integer,
        ForeignKey("switches.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("username", String(64), nullable=False),
    Column("password", String(255)),
    Column("password_env", String(128)),
    Column("port", Integer),
    Column("use_https", Boolean),
    Column("timeout", Integer),
)

switch_interfaces = Table(
    "switch_interfaces",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("switch_id", Integer, ForeignKey("switches.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("interface_name", String(64), nullable=False),
    Column("mode", String(16), default="unknown"),
    Column("admin_status", String(16), default="unknown"),
    Column("oper_status", String(16), default="unknown"),
    Column("vlan_id", Integer),
    Column("native_vlan_id", Integer),
    Column("trunk_vlans", Text),
    Column("speed", String(32)),
    Column("description", String(255)),
    Column("port_type", String(64)),
    Column("transceiver_temp", Float),
    Column("custom_tag", String(255)),
    Column("last_synced", DateTime),
)

switch_vlans = Table(
    "switch_vlans",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("switch_id", Integer, ForeignKey("switches.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("vlan_id", Integer, nullable=False),
    Column("name", String(32)),
    Column("description", String(255)),
    UniqueConstraint("switch_id", "vlan_id", name="uq_switch_vlan"),
)

port_channels = Table(
    "port_channels",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("switch_id", Integer, ForeignKey("switches.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("port_channel_name", String(32), nullable=False),
    Column("port_channel_number", Integer, nullable=False),
    Column("mode", String(16), default="trunk"),
    Column("vlan_id", Integer),
    Column("native_vlan_id", Integer),
    Column("trunk_vlans", Text),
    Column("lacp_mode", String(16), default="active"),
    Column("description", String(255)),
    Column("admin_status", String(16), default="unknown"),
    Column("oper_status", String(16), default="unknown"),
    UniqueConstraint("switch_id", "port_channel_number", name="uq_switch_pc_number"),
    UniqueConstraint("switch_id", "port_channel_name", name="uq_switch_pc_name"),
)

port_channel_members = Table(
    "port_channel_members",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "port_channel_id",
        Integer,
        ForeignKey("port_channels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("interface_name", String(64), nullable=False),
    UniqueConstraint("port_channel_id", "interface_name", name="uq_pc_member"),
)

switch_configs = Table(
    "switch_configs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("switch_id", Integer, ForeignKey("switches.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("config_text", Text, nullable=False),
    Column("config_hash", String(64), nullable=False, index=True),
    Column("backup_type", String(16), nullable=False, default="manual"),
    Column("created_by", Integer),
    Column("created_at", DateTime),
    Column("notes", Text),
    Column("config_changes", Text),
    UniqueConstraint("switch_id", "config_hash", name="uq_switch_config_hash"),
)

audit_log = Table(
    "audit_log",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer),
    Column("action", String(255), nullable=False),
    Column("target_type", String(32)),
    Column("target_id", Integer),
    Column("details", Text),
    Column("ip_address", String(45)),
    Column("created_at", DateTime),
)

schema_version = Table(
    "schema_version",
    metadata,
    Column("version", Integer, primary_key=True),
    Column("applied_at", DateTime),
)
