"""
Configuration constants for archive-mirror.

Everything tunable lives here as a module-level constant so it is documented
in one place. The extraction engine reads the safety ceilings through this
module at call time.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

# -------------------------------------------------------
# Remote source
# -------------------------------------------------------
RAW_BASE = "https://raw.githubusercontent.com"
DEFAULT_BRANCH = "main"
USER_AGENT = "archive-mirror/1.0 (+https://github.com/Storage-Tech-2/ST2-Downloader)"

# Root config document, relative to the source's base URL
CONFIG_PATH = "config.json"

# Every channel and entry directory carries its manifest under this name
MANIFEST_NAME = "data.json"

# -------------------------------------------------------
# Network
# -------------------------------------------------------
# Index documents are small; attachments can be large world archives.
INDEX_TIMEOUT = httpx.Timeout(10.0)
DOWNLOAD_TIMEOUT = httpx.Timeout(60.0, connect=30.0)

MAX_CONCURRENT_REQUESTS = 8

# Bytes held in memory for a single attachment download (1 GB)
MAX_DOWNLOAD_BYTES = 1_000_000_000

DOWNLOAD_CHUNK_SIZE = 64 * 1024

# -------------------------------------------------------
# Extraction safety ceilings
# -------------------------------------------------------
MAX_ENTRY_BYTES = 512 * 1024 * 1024  # 512 MiB per entry
MAX_TOTAL_UNZIPPED_BYTES = 1_000_000_000  # ~1 GB per archive
MAX_ENTRY_COUNT = 20000

EXTRACT_CHUNK_SIZE = 8192

# A directory holding this file is a world save
WORLD_MARKER = "level.dat"

# OS-generated metadata directories that never belong to a world
JUNK_DIRECTORIES = ("__MACOSX",)

TEMP_ZIP_PREFIX = "archive_mirror_wdl_"

# -------------------------------------------------------
# Saving
# -------------------------------------------------------
# Plain attachments without an extension are schematics
DEFAULT_EXTENSION = ".litematic"
DEFAULT_FILE_NAME = "download"
DEFAULT_WORLD_NAME = "world"

# -------------------------------------------------------
# Search
# -------------------------------------------------------
DEFAULT_PAGE_SIZE = 20
DEFAULT_SORT = "newest"
SORT_OPTIONS = ("newest", "updated", "name", "code")

# -------------------------------------------------------
# Known remote sources
# -------------------------------------------------------
@dataclass(frozen=True)
class ServerEntry:
    """
    One remote archive source: a GitHub repository whose raw files form the
    remote tree of manifests and attachments.

    Attributes:
        id: Short stable key used to select the source
        name: Display name
        owner: Repository owner
        repo: Repository name
        branch: Branch the raw files are read from
        download_folder: Sub-folder suggested for this source's downloads
        raw_base: Host serving the raw files (mirrors and tests override it)
    """
    id: str
    name: str
    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    description: str = ""
    discord_invite_url: Optional[str] = None
    submissions_url: Optional[str] = None
    download_folder: str = ""
    raw_base: str = RAW_BASE

    @property
    def base_url(self) -> str:
        """Base URL every relative path of this source is joined against."""
        branch = self.branch or DEFAULT_BRANCH
        return f"{self.raw_base.rstrip('/')}/{self.owner}/{self.repo}/{branch}"


SERVERS: List[ServerEntry] = [
    ServerEntry(
        id="st2",
        name="Storage Tech 2",
        owner="Storage-Tech-2",
        repo="Archive",
        branch=DEFAULT_BRANCH,
        description="Official Storage Tech 2 archive",
        discord_invite_url="https://discord.gg/hztJMTsx2m",
        submissions_url="https://discord.com/channels/1375556143186837695/1375575317007040654",
        download_folder="st2",
    ),
    ServerEntry(
        id="soon",
        name="Soontech",
        owner="Soontech-Annals",
        repo="SoonNowArchive",
        branch=DEFAULT_BRANCH,
        description="Encoded storage community archives",
        discord_invite_url="https://discord.gg/dkSM2PyzJe",
        submissions_url="https://discord.com/channels/1325008017015701504/1390380935148601426",
        download_folder="soon",
    ),
    ServerEntry(
        id="wither",
        name="Wither Archive",
        owner="DuskScorpio",
        repo="wither-archive",
        branch=DEFAULT_BRANCH,
        description="Wither technology",
        discord_invite_url="https://discord.gg/wd594eEtfm",
        submissions_url="https://discord.com/channels/913065809096638494/1391650300510867487",
        download_folder="wither",
    ),
    ServerEntry(
        id="autocraft",
        name="Autocraft Archive",
        owner="XPBot1",
        repo="Autocrafting-Archive",
        branch=DEFAULT_BRANCH,
        description="Autocrafting community",
        discord_invite_url="https://discord.gg/guZdbQ9KQe",
        submissions_url="https://discord.com/channels/856232076252282890/1452066872366206977",
        download_folder="autocraft",
    ),
]

_SERVERS_BY_ID: Dict[str, ServerEntry] = {s.id: s for s in SERVERS}


def default_server() -> ServerEntry:
    """Return the source used when none is selected."""
    return SERVERS[0]


def get_server(server_id: str) -> ServerEntry:
    """
    Look up a known remote source by id (case-insensitive).

    Raises:
        KeyError: if no source has that id
    """
    key = (server_id or "").strip().lower()
    if key not in _SERVERS_BY_ID:
        raise KeyError(f"Unknown server {server_id!r}, expected one of {sorted(_SERVERS_BY_ID)}")
    return _SERVERS_BY_ID[key]
