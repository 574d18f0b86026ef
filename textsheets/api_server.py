"""
TextSheets API Server - FastAPI host for editor frontends
Provides REST and WebSocket endpoints for sheet evaluation and highlight remapping.
"""

import json
import logging
from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .constants import API_HOST, API_PORT, APP_NAME, APP_VERSION, FORMULA_REFERENCE
from .document import ChangeSet, TextDocument
from .document_manager import DocumentManager
from .highlights import remap_highlights
from .models import Highlight, SheetConfig
from .sheet_pipeline import EvaluationResult, evaluate_sheets
from .syntax_highlighter import SyntaxHighlighter

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class EvaluateRequest(BaseModel):
    text: str
    sheet_configs: List[SheetConfig]
    document_id: str = "document"
    name: Optional[str] = None


class EvaluationResponse(BaseModel):
    highlights: List[Highlight]
    sheets: Dict[str, List[Dict[str, Any]]]


class ChangeModel(BaseModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    insert: str = ""


class RemapRequest(BaseModel):
    highlights: List[Highlight]
    changes: List[ChangeModel]


class HighlightsResponse(BaseModel):
    highlights: List[Highlight]


class SyntaxHighlightRequest(BaseModel):
    formula: str
    sheet_names: List[str] = Field(default_factory=list)


class SyntaxHighlightResponse(BaseModel):
    highlights: List[Dict]


class DocumentCreateRequest(BaseModel):
    name: Optional[str] = None
    text: str = ""


class DocumentTextRequest(BaseModel):
    text: str


class ChangesRequest(BaseModel):
    changes: List[ChangeModel]


class SheetConfigsRequest(BaseModel):
    sheet_configs: List[SheetConfig]


def to_change_set(changes: List[ChangeModel]) -> ChangeSet:
    return ChangeSet([(c.start, c.end, c.insert) for c in changes])


def to_response(result: EvaluationResult) -> EvaluationResponse:
    return EvaluationResponse(highlights=result.highlights, sheets=result.sheets_scope)


# =============================================================================
# FASTAPI APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title=f"{APP_NAME} API",
    description="Sheet evaluation backend for TextSheets editors",
    version=APP_VERSION
)

# Enable CORS for editor frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Open documents and the formula syntax highlighter
manager = DocumentManager()
highlighter = SyntaxHighlighter()


# WebSocket connection manager
class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def send_personal_message(self, message: str, websocket: WebSocket):
        await websocket.send_text(message)

    async def broadcast(self, message: str):
        for connection in list(self.active_connections):
            try:
                await connection.send_text(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.info("Dropping dead websocket connection: %s", e)
                self.disconnect(connection)


connections = ConnectionManager()


def get_document_or_404(document_id: str) -> TextDocument:
    document = manager.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return document


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/")
@app.head("/")
async def root():
    """Health check endpoint"""
    return {
        "message": f"{APP_NAME} API Server",
        "version": APP_VERSION,
        "status": "running",
        "timestamp": datetime.now().isoformat()
    }


@app.post("/api/evaluate", response_model=EvaluationResponse)
async def evaluate(request: EvaluateRequest):
    """
    Evaluate sheets against a text without registering a document.
    """
    document = TextDocument(request.document_id, request.text, name=request.name)
    result = evaluate_sheets(document, request.sheet_configs, documents=manager)
    return to_response(result)


@app.post("/api/remap", response_model=HighlightsResponse)
async def remap(request: RemapRequest):
    """
    Move highlights across an edit without re-evaluating.
    """
    try:
        change_set = to_change_set(request.changes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return HighlightsResponse(highlights=remap_highlights(request.highlights, change_set))


@app.post("/api/syntax-highlight", response_model=SyntaxHighlightResponse)
async def get_syntax_highlighting(request: SyntaxHighlightRequest):
    """
    Get syntax highlighting data for a formula without evaluating it.
    """
    highlights = highlighter.highlight_formula(request.formula, request.sheet_names)
    return SyntaxHighlightResponse(highlights=highlights)


@app.get("/api/functions")
async def get_available_functions():
    """
    Get list of available formula functions for autocompletion.
    """
    return {"functions": FORMULA_REFERENCE}


@app.post("/api/documents")
async def create_document(request: DocumentCreateRequest):
    document_id = manager.create_document(request.name, request.text)
    document = manager.get_document(document_id)
    return {"id": document_id, "name": document.name}


@app.delete("/api/documents/{document_id}")
async def delete_document(document_id: str):
    if not manager.delete_document(document_id):
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return {"status": "success"}


@app.put("/api/documents/{document_id}/sheets", response_model=EvaluationResponse)
async def update_sheet_configs(document_id: str, request: SheetConfigsRequest):
    """
    Replace a document's sheets and re-evaluate it.
    """
    get_document_or_404(document_id)
    manager.set_sheet_configs(document_id, request.sheet_configs)
    return to_response(manager.evaluate(document_id))


@app.put("/api/documents/{document_id}/text", response_model=EvaluationResponse)
async def update_document_text(document_id: str, request: DocumentTextRequest):
    """
    Report a settled edit; the document is re-evaluated once.
    """
    get_document_or_404(document_id)
    return to_response(manager.document_changed(document_id, request.text))


@app.post("/api/documents/{document_id}/changes", response_model=HighlightsResponse)
async def apply_document_changes(document_id: str, request: ChangesRequest):
    """
    Apply an edit and return the previous highlights remapped across it.
    """
    get_document_or_404(document_id)
    try:
        change_set = to_change_set(request.changes)
        highlights = manager.apply_changes(document_id, change_set)
    except (ValueError, IndexError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return HighlightsResponse(highlights=highlights)


@app.get("/api/documents/{document_id}/evaluation", response_model=EvaluationResponse)
async def get_evaluation(document_id: str):
    get_document_or_404(document_id)
    result = manager.get_last_result(document_id)
    if result is None:
        result = manager.evaluate(document_id)
    return to_response(result)


# =============================================================================
# WEBSOCKET ENDPOINTS
# =============================================================================

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for live evaluation while a document is edited.
    """
    await connections.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            message = json.loads(data)

            if message["type"] == "evaluate":
                request = EvaluateRequest(**message["request"])
                document = TextDocument(request.document_id, request.text, name=request.name)
                result = evaluate_sheets(document, request.sheet_configs, documents=manager)
                response = {
                    "type": "evaluation_result",
                    "result": to_response(result).model_dump(mode="json")
                }
                await connections.send_personal_message(json.dumps(response), websocket)

            elif message["type"] == "document_changed":
                document_id = message["document_id"]
                if manager.get_document(document_id) is None:
                    await connections.send_personal_message(
                        json.dumps({"type": "error", "detail": f"Document not found: {document_id}"}),
                        websocket,
                    )
                    continue
                result = manager.document_changed(document_id, message.get("text"))
                response = {
                    "type": "evaluation_result",
                    "document_id": document_id,
                    "result": to_response(result).model_dump(mode="json")
                }
                await connections.broadcast(json.dumps(response))

            elif message["type"] == "changes":
                document_id = message["document_id"]
                if manager.get_document(document_id) is None:
                    await connections.send_personal_message(
                        json.dumps({"type": "error", "detail": f"Document not found: {document_id}"}),
                        websocket,
                    )
                    continue
                try:
                    changes = [ChangeModel(**change) for change in message["changes"]]
                    highlights = manager.apply_changes(document_id, to_change_set(changes))
                except (ValueError, IndexError) as e:
                    await connections.send_personal_message(
                        json.dumps({"type": "error", "detail": str(e)}),
                        websocket,
                    )
                    continue
                response = {
                    "type": "remapped_highlights",
                    "document_id": document_id,
                    "highlights": [h.model_dump(mode="json") for h in highlights]
                }
                await connections.send_personal_message(json.dumps(response), websocket)

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        connections.disconnect(websocket)


# =============================================================================
# SERVER STARTUP
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    print(f"Starting {APP_NAME} API Server...")
    print(f"Server will be available at: http://{API_HOST}:{API_PORT}")
    print(f"API documentation at: http://{API_HOST}:{API_PORT}/docs")

    uvicorn.run(
        "textsheets.api_server:app",
        host=API_HOST,
        port=API_PORT,
        reload=True,
        log_level="info"
    )
