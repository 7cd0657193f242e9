"""
Default configuration values for workspace-indexer.

Centralized defaults that can be overridden by environment variables or config files.
"""

from pathlib import Path
from typing import Any, Dict

# Global default settings
DEFAULT_SETTINGS = {
    # Qdrant configuration
    "qdrant": {
        "url": "http://localhost:6333",
        "timeout": 60.0,
        "collection_name": "${project_name}-blocks",
        "vector_size": 384,
        "distance_metric": "cosine",
        "batch_size": 100
    },

    # Local ONNX embeddings
    "embedding": {
        "model_name": "all-MiniLM-L6-v2",
        "dimensions": 384,
        "model_base_path": str(Path.home() / ".cache" / "workspace-indexer"),
        "max_length": 256,
        "normalize_embeddings": False,
        "intra_op_num_threads": 0
    },

    # File indexing
    "indexing": {
        "exclude_dirs": [
            "node_modules", "__pycache__", ".git", ".svn", ".hg",
            "build", "dist", "target", ".cache", ".pytest_cache",
            ".mypy_cache", "venv", ".venv", "env", ".env"
        ],
        "max_file_size_mb": 10,
        "embed_batch_size": 32,
        "include_comments": True,
        "include_signature": True,
        "languages": []
    },

    # Project defaults
    "project": {
        "version": "1.0.0"
    },

    # Logging
    "logging": {
        "level": "INFO",
        "log_to_file": False
    }
}

# Environment variable mappings
ENV_VAR_MAPPING = {
    'WSI_QDRANT_URL': 'qdrant.url',
    'WSI_QDRANT_TIMEOUT': 'qdrant.timeout',
    'WSI_QDRANT_COLLECTION': 'qdrant.collection_name',
    'WSI_MODEL_NAME': 'embedding.model_name',
    'WSI_MODEL_BASE_PATH': 'embedding.model_base_path',
    'WSI_NORMALIZE_EMBEDDINGS': 'embedding.normalize_embeddings',
    'WSI_EMBED_BATCH_SIZE': 'indexing.embed_batch_size',
    'WSI_MAX_FILE_SIZE_MB': 'indexing.max_file_size_mb'
}


def get_default_project_config() -> Dict[str, Any]:
    """Get default project configuration template"""
    return {
        'name': '${project_name}',
        'path': '${project_path}',
        'qdrant': dict(DEFAULT_SETTINGS['qdrant']),
        'embedding': dict(DEFAULT_SETTINGS['embedding']),
        'indexing': {
            key: list(value) if isinstance(value, list) else value
            for key, value in DEFAULT_SETTINGS['indexing'].items()
        },
        'description': None,
        'version': DEFAULT_SETTINGS['project']['version']
    }
