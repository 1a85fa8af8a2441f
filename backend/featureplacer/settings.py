import os

from .utils.cache import get_cache

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Berlin tree cadastre; any point feature layer with genus/crown/height fields works
FEATURE_LAYER_URL = os.getenv(
    "FEATURE_LAYER_URL",
    "https://services2.arcgis.com/jUpNdisbWqRpMo35/arcgis/rest/services/Baumkataster_Berlin/FeatureServer/0",
)

OUT_SR = int(os.getenv("OUT_SR", "4326"))
SPAWN_HEIGHT = float(os.getenv("SPAWN_HEIGHT", "10000"))
RESULT_RECORD_COUNT = int(os.getenv("RESULT_RECORD_COUNT", "500"))

QUERY_TIMEOUT = float(os.getenv("QUERY_TIMEOUT_S", "30"))
QUERY_RETRY_ATTEMPTS = int(os.getenv("QUERY_RETRY_ATTEMPTS", "1"))
CACHE_TTL = int(os.getenv("CACHE_TTL", "0"))

# Baseline axis lengths of the default tree asset, in metres
REFERENCE_WIDTH = float(os.getenv("REFERENCE_WIDTH", "1.0"))
REFERENCE_HEIGHT = float(os.getenv("REFERENCE_HEIGHT", "1.0"))
DEFAULT_ASSET = os.getenv("DEFAULT_ASSET", "tree_default") or None

# Attribute names on the Baumkataster layer
CATEGORY_FIELD = os.getenv("CATEGORY_FIELD", "gattung")
WIDTH_FIELD = os.getenv("WIDTH_FIELD", "kronedurch")
HEIGHT_FIELD = os.getenv("HEIGHT_FIELD", "baumhoehe")

FIELD_CATALOG = tuple(
    field.strip()
    for field in os.getenv("FIELD_CATALOG", "gattung,kronedurch,baumhoehe,art_dtsch,pflanzjahr,bezirk").split(",")
    if field.strip()
)

SELECT_ALL_LABEL = "Get All Features"

# Genus (upper case) to asset key
ASSET_CATALOG = {
    "ACER": "tree_maple",
    "TILIA": "tree_linden",
    "QUERCUS": "tree_oak",
    "PLATANUS": "tree_plane",
    "AESCULUS": "tree_chestnut",
    "BETULA": "tree_birch",
    "PINUS": "tree_pine",
}

cache = get_cache(ttl=CACHE_TTL)
