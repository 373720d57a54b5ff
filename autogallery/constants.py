KV_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
key TEXT PRIMARY KEY,
value TEXT NOT NULL,
updated REAL NOT NULL
);
"""

MIB = 1024 * 1024

# Uploads we accept into the local store
ALLOWED_UPLOAD_EXTS = {"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp"}

# Anything discovery will turn into a record
REMOTE_IMAGE_EXTS = {"jpg", "jpeg", "png", "gif", "webp", "bmp", "svg"}

MAX_UPLOAD_BYTES = 5 * MIB
MAX_PAYLOAD_CHARS = 10 * MIB   # absolute ceiling for an embedded payload
PAYLOAD_MARKER = "data:image/"
COLLATION_LOCALE = "ru"

DEFAULT_QUOTA_BYTES = 5 * MIB
HEALTH_FAIR_PCT = 80.0
HEALTH_WARNING_PCT = 90.0

STORAGE_KEY = "localImageGallery"
CACHE_KEY = "githubGalleryCache"

PROBE_TIMEOUT_S = 3.0
CACHE_TTL_S = 5 * 60
CANDIDATE_LIMIT = 500
MAX_IMAGES = 1000

USER_AGENT = "autogallery/0.1"

# relative to the repo root; {folder} expands to the gallery folder
MANIFEST_NAMES = ["{folder}_files.txt", "images-list.txt", "images.json"]

# Brute probing vocabulary
NAME_PREFIXES = [
"photo", "image", "picture", "img", "pic", "snap", "shot",
"photo1", "photo2", "photo3", "image1", "image2", "img1", "img2",
"cat", "dog", "nature", "landscape", "portrait", "art", "design",
"screenshot", "screen", "wallpaper", "background", "cover",
"zebra", "yogurt", "xray", "whale", "violet", "ultra", "tiger",
"sample", "test", "demo", "example", "illustration",
]
NAME_PREFIX_COUNT = 20
NAME_SUFFIXES = ["", "1", "2", "_large", "_small"]
NAME_NUMBER_STEMS = ["", "img", "photo", "picture"]
NAME_NUMBER_MAX = 50
NAME_EXTS = ["jpg", "jpeg", "png", "gif", "webp", "bmp"]

# Endpoint probing, tried against the static-pages mirror
COMMON_NAMES = [
"image.jpg", "photo.jpg", "picture.png", "img.jpg", "photo1.jpg",
"photo2.jpg", "image1.png", "image2.png", "cat.jpg", "dog.png",
"nature.jpg", "landscape.png", "screenshot.png", "wallpaper.jpg",
"background.jpg", "cover.jpg", "avatar.png", "logo.png", "icon.jpg",
]
