import os
import pathlib

from dotenv import load_dotenv

load_dotenv()

# Layer configuration: (category, role, optional)
# Order is the compositing order, bottom to top.
LAYERS = [
    ("background", "background", False),
    ("head", "base", False),
    ("eyes", "feature", False),
    ("clothing", "outfit", False),
    ("neck", "accessory", False),
    ("hats", "accessory", False),
    ("binky", "accessory", True),
    ("special", "special", True),
]

AVAILABLE_SPECIES = ["indigo", "green"]
DEFAULT_SPECIES = "indigo"

CANVAS_WIDTH = 512
CANVAS_HEIGHT = 512
PIXEL_SIZE = 8

# Metadata
BASE_NAME = "Babiez"
DESCRIPTION = "Generated {species} Space Babiez NFT with 2D and pixel art"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() == "true"


# Runtime settings - loaded from .env
SPECIES = os.getenv("SPECIES") or None
STORAGE = os.getenv("STORAGE", "local").strip().lower()
ASSETS_PATH = pathlib.Path(os.getenv("ASSETS_PATH", "assets"))
OUTPUT_PATH = pathlib.Path(os.getenv("OUTPUT_PATH", "output"))
SKIP_PIXELATION = _env_flag("SKIP_PIXELATION")
DEBUG_LAYERS = _env_flag("DEBUG_LAYERS")

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

COMPONENTS_BUCKET = os.getenv("COMPONENTS_BUCKET", "space-babiez")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "nft-storage")
