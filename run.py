import os

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    # Single worker: the cache, keyed locks and HTTP clients are per process
    workers = int(os.environ.get("WEB_CONCURRENCY", 1))
    uvicorn.run(
        "commercialx.main:app",
        host="0.0.0.0",
        port=port,
        workers=workers,
    )
