import os
from dotenv import load_dotenv
from pathlib import Path

# Load environment variables from .env file with explicit path
load_dotenv(dotenv_path=Path(__file__).parent.parent / '.env')

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# OpenAI Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002")
EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS", "1536"))
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o")

# Vector index (ChromaDB)
#
# CHROMA_HOST switches from the local persistent store to a remote server.
INDEX_NAME = os.getenv("INDEX_NAME", "superteam-knowledge")
CHROMA_PERSIST_DIR = os.getenv("CHROMA_PERSIST_DIR", str(Path(__file__).parent / "rag" / "chroma_db"))
CHROMA_HOST = os.getenv("CHROMA_HOST")
CHROMA_PORT = int(os.getenv("CHROMA_PORT", "8000"))

# Metadata store
METADATA_DB_PATH = os.getenv("METADATA_DB_PATH", str(Path(__file__).parent / "metadata_store.db"))

# Chunking and retrieval
TOKENIZER_ENCODING = os.getenv("TOKENIZER_ENCODING", "cl100k_base")
MAX_TOKENS_PER_CHUNK = int(os.getenv("MAX_TOKENS_PER_CHUNK", "1000"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "5"))

# Outbound HTTP
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "60"))

# Telegram Configuration
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_API_URL = os.getenv("TELEGRAM_API_URL", "https://api.telegram.org")
TELEGRAM_WEBHOOK_SECRET = os.getenv("TELEGRAM_WEBHOOK_SECRET")
# Registered with Telegram on startup when set
TELEGRAM_WEBHOOK_URL = os.getenv("TELEGRAM_WEBHOOK_URL")
# Mini app opened by the /draft and /d2 commands
WEBAPP_URL = os.getenv("WEBAPP_URL", "https://example.com/draft")

# Deepgram Configuration
DEEPGRAM_API_KEY = os.getenv("DEEPGRAM_API_KEY")
DEEPGRAM_URL = os.getenv("DEEPGRAM_URL", "https://api.deepgram.com/v1/listen?model=nova-3&smart_format=true")
