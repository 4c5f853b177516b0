import logging

from fastapi import FastAPI

from deploy_engine.api.routes.apps import router as apps_router

app = FastAPI(title="Deploy Engine API")


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(apps_router)


def main():
    """Run the API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
