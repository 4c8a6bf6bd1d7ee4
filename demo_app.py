"""Demo application running the change relay against an in-memory store.

The relay is configured from RELAY_* environment variables. Records are kept
in memory, so this is for trying the relay out, not for production.

Run with:
    RELAY_COLLECTION_PATH=requests \
    RELAY_API_URL=https://httpbin.org/post \
    RELAY_RESPONSE_FIELD=json \
    RELAY_TEMPLATE_PATH=config/template \
    python demo_app.py

Then seed the template and push an event:
    curl -X PUT localhost:8000/documents/config/template \
        -H 'content-type: application/json' \
        -d '{"template": {"echo": "You sent {{ value }}"}, "version": 1}'
    curl -X PUT localhost:8000/documents/requests/abc \
        -H 'content-type: application/json' -d '{"input": "hello"}'
    curl localhost:8000/documents/requests/abc
"""

from typing import Any

import uvicorn
from fastapi import HTTPException

from change_relay.adapters.asgi import create_app
from change_relay.config import RelayConfig
from change_relay.core.processor import RecordProcessor
from change_relay.models import Change
from change_relay.observability.logging import configure_logging
from change_relay.storage.memory import MemoryRecordStore

config = RelayConfig.from_env()
configure_logging(level=config.log_level, json_output=config.json_logs)

store = MemoryRecordStore()
processor = RecordProcessor.from_config(config, store)
app = create_app(processor)


@app.put("/documents/{path:path}")
async def put_document(path: str, data: dict[str, Any]) -> dict[str, Any]:
    """Write a document and, for watched records, run the relay on the write."""
    before = await store.get(path)
    after = await store.put(path, data)

    if not processor.in_collection(path):
        return {"path": path, "outcome": None}

    result = await processor.on_record_write(Change(record_id=path, before=before, after=after))
    return {"path": path, "outcome": result.outcome.value}


@app.get("/documents/{path:path}")
async def get_document(path: str) -> dict[str, Any]:
    """Read a document."""
    snapshot = await store.get(path)
    if not snapshot.exists:
        raise HTTPException(status_code=404, detail=f"No document at {path}")
    return snapshot.data


@app.delete("/documents/{path:path}")
async def delete_document(path: str) -> dict[str, Any]:
    """Delete a document, running the relay for watched records."""
    before = await store.get(path)
    if not await store.delete(path):
        raise HTTPException(status_code=404, detail=f"No document at {path}")

    if not processor.in_collection(path):
        return {"path": path, "outcome": None}

    after = await store.get(path)
    result = await processor.on_record_write(Change(record_id=path, before=before, after=after))
    return {"path": path, "outcome": result.outcome.value}


if __name__ == "__main__":
    print("Starting change relay demo on http://localhost:8000")
    print("API docs: http://localhost:8000/docs")
    uvicorn.run(app, host="0.0.0.0", port=8000)
