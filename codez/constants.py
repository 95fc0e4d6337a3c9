"""
Shared constants for Codez.
"""

DEFAULT_TRIGGER_PHRASE = "/codex"

BOT_LOGIN = "github-actions[bot]"
BOT_EMAIL = "github-actions[bot]@users.noreply.github.com"

# Tracking comment
PROGRESS_TITLE = "**🚀 Codez Progress**"
PROGRESS_BAR_BLOCKS = 20
PROGRESS_STEPS = (
    "🔍 Gathering context",
    "📝 Planning",
    "✨ Applying edits",
    "🧪 Testing",
)
SPINNER_HTML = (
    ' <img src="https://github.com/user-attachments/assets/'
    '082dfba3-0ee2-4b6e-9606-93063bcc7590" alt="spinner" width="16" height="16"/>'
)
LOADING_PHRASES = (
    "Reading the room...",
    "Warming up the neurons...",
    "Consulting the commit history...",
    "Untangling the spaghetti...",
    "Asking the rubber duck...",
    "Counting semicolons...",
    "Sharpening pencils...",
    "Brewing more coffee...",
)

# Images attached to comments
IMAGES_DIR = "codex-comment-images"
ALLOWED_IMAGE_PREFIX = "https://github.com/user-attachments/assets/"

# Paths never committed, even when the agent touched them
WORKFLOWS_DIR = ".github/workflows"
EXCLUDED_PREFIXES = (f"{WORKFLOWS_DIR}/", f"{IMAGES_DIR}/")

DEFAULT_IGNORE_PATTERNS = (".git/**", "node_modules/**")

# GitHub rejects comment bodies above 65536 characters
MAX_COMMENT_LENGTH = 60000
TRUNCATION_NOTICE = "\n\n... (output truncated)"

URL_READER_PREFIX = "https://r.jina.ai/"
URL_FETCH_TIMEOUT_SECONDS = 60.0
