import os
import uvicorn

if __name__ == "__main__":
    dev = os.environ.get("ENV", "dev") == "dev"
    port = int(os.environ.get("PORT", 8000))

    if dev:
        # Local dev with reload
        uvicorn.run("examgrader.main:app", host="127.0.0.1", port=port, reload=True)
    else:
        # Behind the gateway; bind to all interfaces, one worker per container
        uvicorn.run("examgrader.main:app", host="0.0.0.0", port=port)
