"""Configuration management for Shotgraph.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SHOTGRAPH_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (SHOTGRAPH_* prefix)
2. .env file in the project root
3. Default values defined in ShotgraphConfig

Example .env file:
    SHOTGRAPH_DATA_DIR=data
    SHOTGRAPH_DEFAULT_ASPECT_RATIO=16:9
    SHOTGRAPH_SERVER_PORT=8000

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time and
is the default for every component that takes a configuration argument.

Usage Example
-------------
    from shotgraph.core.config import config

    print(config.node_width)
    print(config.asset_db_path)

Canvas Geometry
---------------
Node rectangles have a fixed width and a height that depends on whether the
node is collapsed.  The collision pass keeps ``collision_gap`` pixels between
a dragged node and anything it pushes, and follows push chains at most
``max_push_depth`` levels deep.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ShotgraphConfig(BaseSettings):
    """Main configuration for Shotgraph.

    Attributes
    ----------
    Paths:
        data_dir : Path
            Directory holding persistent data (asset database, saved graphs)
        asset_db_name : str
            File name of the SQLite asset database inside ``data_dir``

    Compiler:
        default_aspect_ratio : str
            Aspect ratio used when no Composition node specifies one

    Canvas geometry:
        node_width : float
            Width of every node rectangle in world units
        collapsed_height, expanded_height : float
            Node rectangle height by collapsed state
        collision_gap : float
            Horizontal gap left between a dragged node and a pushed node
        max_push_depth : int
            Maximum length of a collision push chain
        port_radius : float
            Hit radius around input/output ports
        port_offset_y : float
            Vertical offset of both ports from the node's top edge
        group_padding : float
            Padding around children of an expanded Group
        group_header_height : float
            Height of the title strip above an expanded Group's children

    Viewport:
        min_zoom, max_zoom : float
            Zoom clamp range
        zoom_step : float
            Increment used by the zoom in/out buttons
        wheel_zoom_factor : float
            Zoom change per unit of wheel delta, scaled by the current zoom

    Server:
        server_host : str
            Bind address for the HTTP API
        server_port : int
            Port for the HTTP API

    Examples
    --------
        >>> custom = ShotgraphConfig(data_dir=Path("/tmp/shots"), collision_gap=10)
        >>> custom.asset_db_path
        PosixPath('/tmp/shots/assets.db')
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SHOTGRAPH_",
        case_sensitive=False,
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for persistent data",
    )
    asset_db_name: str = Field(
        default="assets.db",
        description="SQLite database file for subject profiles and image assets",
    )

    # Compiler
    default_aspect_ratio: str = Field(
        default="1:1",
        description="Aspect ratio used when no Composition node sets one",
    )

    # Canvas geometry
    node_width: float = Field(default=200.0, gt=0)
    collapsed_height: float = Field(default=50.0, gt=0)
    expanded_height: float = Field(default=120.0, gt=0)
    collision_gap: float = Field(
        default=20.0,
        ge=0,
        description="Gap kept between a dragged node and the node it pushes",
    )
    max_push_depth: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum length of a collision push chain",
    )
    port_radius: float = Field(default=12.0, gt=0)
    port_offset_y: float = Field(default=24.0, ge=0)
    group_padding: float = Field(default=20.0, ge=0)
    group_header_height: float = Field(default=30.0, ge=0)

    # Viewport
    min_zoom: float = Field(default=0.1, gt=0)
    max_zoom: float = Field(default=5.0, gt=0)
    zoom_step: float = Field(default=0.1, gt=0)
    wheel_zoom_factor: float = Field(default=0.001, gt=0)

    # Server settings
    server_host: str = Field(
        default="127.0.0.1",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the data directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def asset_db_path(self) -> Path:
        """Full path of the SQLite asset database."""
        return self.data_dir / self.asset_db_name

    def node_height(self, collapsed: bool) -> float:
        """Rectangle height of a node in the given collapsed state."""
        return self.collapsed_height if collapsed else self.expanded_height


# Global configuration instance
config = ShotgraphConfig()
