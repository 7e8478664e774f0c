"""Configuration management for Ask the Menu."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Storage backend: "memory" or "supabase"
CHUNK_STORE = os.getenv("CHUNK_STORE", "memory")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Model Configuration
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.1-8b-instant")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1000"))
LLM_FALLBACK_ENABLED = os.getenv("LLM_FALLBACK_ENABLED", "true").lower() in ("1", "true", "yes")

# Embedding Configuration (hashed bag-of-words)
EMBEDDING_DIMENSION = 384
HASH_POSITIONS = 3
HASH_POSITION_STRIDE = 1001
MIN_TOKEN_LENGTH = 3

# Chunking Configuration
MIN_CHUNK_CHARS = 20  # paragraphs of this length or shorter are dropped

# Retrieval Configuration
MAX_CONTEXT_CHUNKS = 8
FULLTEXT_LIMIT = 5
FALLBACK_SCORE = 0.5  # neutral placeholder for unscored chunks

# OCR Configuration
OCR_LANGUAGE = os.getenv("OCR_LANGUAGE", "eng")
OCR_DPI = int(os.getenv("OCR_DPI", "300"))

# Upload Configuration
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".tif", ".tiff", ".bmp"}
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS | {".pdf"}

NO_INFORMATION_ANSWER = (
    "I couldn't find any relevant menu information to answer your question. "
    "Please try rephrasing or upload more menu data."
)

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
