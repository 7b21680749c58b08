import uvicorn

if __name__ == "__main__":
    # Set EAGRAPH_SNAPSHOT_PATH to serve a saved repository.
    print("Starting EA Graph Read API...")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "eagraph.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
