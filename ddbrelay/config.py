from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "DDB Relay"
    debug: bool = False
    environment: str = "development"

    host: str = "0.0.0.0"
    port: int = 3001

    # Outbound request timeouts (seconds)
    request_timeout: float = 30.0
    config_timeout: float = 10.0

    # Cache lifetimes (seconds)
    auth_ttl_seconds: float = 5 * 60
    config_ttl_seconds: float = 60 * 60
    items_ttl_seconds: float = 60 * 60
    spells_ttl_seconds: float = 60 * 60

    # Sliding window rate limit applied to /api/ routes
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: float = 15 * 60

    # Items and spells fetched this close together produce a combined report
    report_window_seconds: float = 5 * 60

    # Used by the catalog report job only
    cobalt_cookie: str = ""

    # Guards /stats when environment == "production"
    admin_key: str = ""


settings = Settings()


# =============================================================================
# PLATFORM ENDPOINTS
# =============================================================================

AUTH_SERVICE_URL = "https://auth-service.dndbeyond.com/v1"
CHARACTER_SERVICE_URL = "https://character-service.dndbeyond.com/character/v5"
GAME_DATA_URL = f"{CHARACTER_SERVICE_URL}/game-data"
PLATFORM_CONFIG_URL = "https://www.dndbeyond.com/api/config/json"

USER_AGENT = "Foundry-VTT-DDB-Importer/1.1.0"

# sharingSetting=2 returns all content shared with the account
SHARING_SETTING = 2


def token_exchange_url() -> str:
    return f"{AUTH_SERVICE_URL}/cobalt-token"


def items_url(sharing_setting: int = SHARING_SETTING) -> str:
    return f"{GAME_DATA_URL}/items?sharingSetting={sharing_setting}"


def spells_url(class_id: int, class_level: int, sharing_setting: int = SHARING_SETTING) -> str:
    return (
        f"{GAME_DATA_URL}/spells?classId={class_id}"
        f"&classLevel={class_level}&sharingSetting={sharing_setting}"
    )


# =============================================================================
# CONTENT CONSTANTS
# =============================================================================

# Unearthed Arcana (playtest content), always dropped from results
EXCLUDED_SOURCE_ID = 39

# Spell lists are complete at max class level
MAX_CLASS_LEVEL = 20

# Session credential bounds, checked before any network work
MIN_CREDENTIAL_LENGTH = 20
MAX_CREDENTIAL_LENGTH = 2000

SPELLCASTING_CLASSES: tuple[tuple[int, str], ...] = (
    (1, "Bard"),
    (2, "Cleric"),
    (3, "Druid"),
    (4, "Paladin"),
    (5, "Ranger"),
    (6, "Sorcerer"),
    (7, "Warlock"),
    (8, "Wizard"),
    (9, "Barbarian"),  # Path of Wild Magic
    (10, "Fighter"),  # Eldritch Knight
    (11, "Monk"),  # Way of the Four Elements
    (12, "Rogue"),  # Arcane Trickster
    (252717, "Artificer"),
    (357975, "Blood Hunter"),
)

SPELL_SCHOOL_MAP: dict[int, str] = {
    1: "Abjuration",
    2: "Conjuration",
    3: "Divination",
    4: "Enchantment",
    5: "Evocation",
    6: "Illusion",
    7: "Necromancy",
    8: "Transmutation",
}

# 0 (Mundane) and 1 (Common) are distinct categories
RARITY_MAP: dict[int, str] = {
    0: "Mundane",
    1: "Common",
    2: "Uncommon",
    3: "Rare",
    4: "Very Rare",
    5: "Legendary",
    6: "Artifact",
    7: "Varies",
}

DEFAULT_RARITY = "Mundane"
