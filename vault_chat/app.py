from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from vault_chat.config import get_config
from vault_chat.api.dependencies import get_container
from vault_chat.api.routes import router as api_router
from vault_chat.api.tools import router as tools_router
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("vault_chat")

@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    if not config.is_configured:
        logger.error("[APP] Models not configured. Start the server through main.py or set the VAULT_* variables.")
        raise RuntimeError("Application not configured")

    logger.info(
        f"[APP] chat={config.main_model.model_name}@{config.main_model.host} "
        f"embed={config.embedding_model.model_name}@{config.embedding_model.host} "
        f"vault={config.vault_path or '-'} platform={config.platform}"
    )
    if not config.tavily_api_key:
        logger.warning("[APP] TAVILY_API_KEY not set; WEB and HYBRID modes run without web results")

    # Open the vector store and databases before the first request
    get_container()
    yield

app = FastAPI(title="Vault Chat", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in (api_router, tools_router):
    app.include_router(router, prefix="/api")

@app.get("/")
async def root():
    config = get_config()
    return {
        "status": "running",
        "models": {
            "chat": config.main_model.model_name if config.main_model else None,
            "embedding": config.embedding_model.model_name if config.embedding_model else None,
        },
        "vault_path": config.vault_path,
        "web_search": bool(config.tavily_api_key),
    }
