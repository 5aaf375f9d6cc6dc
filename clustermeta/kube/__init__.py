"""In-memory Kubernetes metadata cache and the handlers that keep it current."""