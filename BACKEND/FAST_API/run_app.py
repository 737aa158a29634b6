# Руководство к файлу (FAST_API/run_app.py)
# Назначение:
# - Локальный запуск приложения DocIntel FastAPI через uvicorn.
# Использование:
# - python -m BACKEND.FAST_API.run_app
# - или: uvicorn BACKEND.FAST_API.fast_api:app --reload

from __future__ import annotations

import uvicorn

if __name__ == "__main__":
    uvicorn.run("BACKEND.FAST_API.fast_api:app", host="127.0.0.1", port=8010, reload=True, log_level="debug")
