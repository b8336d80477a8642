import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import Settings
from .embeddings import EmbeddingClient
from .errors import (
    ApiError,
    ConnectivityError,
    CorruptDataError,
    InvalidResponseError,
    StorageIOError,
    ValidationError,
)
from .memory import ConversationMemory
from .models import (
    AddMessageRequest,
    ConversationContext,
    EmbeddingRequest,
    EmbeddingResponse,
    SaveContextRequest,
)
from .storage import FileContextStore

settings = Settings.from_env()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

store = FileContextStore(base_path=settings.storage_path, encryption_key=settings.encryption_key)
memory = ConversationMemory(store=store)
embedder = EmbeddingClient(settings.embedding)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    embedder.close()


app = FastAPI(title="Conversation Context Store", lifespan=lifespan)

_ERROR_STATUS = {
    ValidationError: 422,
    CorruptDataError: 500,
    StorageIOError: 503,
    ConnectivityError: 503,
    ApiError: 502,
    InvalidResponseError: 502,
}


def _error_response(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(code for error_type, code in _ERROR_STATUS.items() if isinstance(exc, error_type))
    if status_code >= 500:
        logger.error("Request %s %s failed", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=status_code, content={"ok": False, "error": str(exc)})


for _error_type in _ERROR_STATUS:
    app.add_exception_handler(_error_type, _error_response)


@app.get("/health")
def healthcheck():
    return {"ok": True, "service": app.title}


@app.get("/contexts/{session_id}")
def get_context(session_id: str):
    context = store.get_context(session_id)
    if context is None:
        raise HTTPException(status_code=404, detail=f"No context stored for session {session_id}")
    return context.to_record()


@app.put("/contexts/{session_id}")
def save_context(session_id: str, body: SaveContextRequest):
    context = ConversationContext(session_id=session_id, messages=body.messages, metadata=body.metadata)
    return store.save_context(session_id, context).to_record()


@app.post("/contexts/{session_id}/messages")
def add_message(session_id: str, body: AddMessageRequest):
    context = memory.add_message(session_id, body.role, body.content, message_id=body.id)
    return context.to_record()


@app.get("/contexts/{session_id}/messages")
def list_messages(session_id: str, limit: int = 50):
    messages = memory.get_messages(session_id, limit=limit)
    return {"session_id": session_id, "messages": [m.model_dump(mode="json") for m in messages]}


@app.delete("/contexts/{session_id}")
def delete_context(session_id: str):
    return {"deleted": store.delete_context(session_id)}


@app.post("/embeddings", response_model=EmbeddingResponse)
def create_embeddings(body: EmbeddingRequest):
    vectors = embedder.generate_embeddings(body.texts)
    dimensions = len(vectors[0]) if vectors else 0
    return EmbeddingResponse(embeddings=vectors, dimensions=dimensions)
