"""
Configuration models for workspace-indexer.

Handles project settings, Qdrant configuration, and the local embedding model setup.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MODEL_FILE_NAME = "model_quantized.onnx"


class QdrantConfig(BaseModel):
    """Qdrant vector database configuration"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Connection settings
    url: str = "http://localhost:6333"
    api_key: Optional[str] = None
    timeout: float = 60.0

    # Collection settings
    collection_name: str = "workspace-blocks"
    vector_size: int = 384  # all-MiniLM-L6-v2 dimensions
    distance_metric: str = "cosine"
    batch_size: int = Field(default=100, ge=1, le=1000)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Qdrant URL format"""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Qdrant URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('distance_metric')
    @classmethod
    def validate_distance_metric(cls, v: str) -> str:
        """Validate distance metric"""
        valid_metrics = {'cosine', 'euclidean', 'dot'}
        if v.lower() not in valid_metrics:
            raise ValueError(f'Distance metric must be one of: {valid_metrics}')
        return v.lower()


class EmbeddingModelConfig(BaseModel):
    """Local ONNX embedding model configuration"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        protected_namespaces=()
    )

    # Model settings
    model_name: str = "all-MiniLM-L6-v2"
    dimensions: int = 384

    # Base directory holding models/<model_name>/...
    model_base_path: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "workspace-indexer"
    )

    # Inference settings
    max_length: int = Field(default=256, ge=1, le=8192)
    normalize_embeddings: bool = False
    intra_op_num_threads: int = Field(default=0, ge=0, le=64)  # 0 lets onnxruntime decide

    @field_validator('model_name')
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        """Model name is used as a directory name"""
        if not v or '/' in v or '\\' in v or v in ('.', '..'):
            raise ValueError('Model name must be a plain directory name')
        return v

    @property
    def model_dir(self) -> Path:
        """Directory holding the tokenizer files"""
        return self.model_base_path / "models" / self.model_name

    @property
    def model_path(self) -> Path:
        """Full path to the quantized ONNX model"""
        return self.model_dir / "onnx" / MODEL_FILE_NAME

    @property
    def is_model_available(self) -> bool:
        """Check if model and tokenizer files are present"""
        return self.model_path.is_file() and self.model_dir.is_dir()


class IndexingConfig(BaseModel):
    """File indexing and processing configuration"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Directory names never descended into
    exclude_dirs: List[str] = Field(
        default_factory=lambda: [
            "node_modules", "__pycache__", ".git", ".svn", ".hg",
            "build", "dist", "target", ".cache", ".pytest_cache",
            ".mypy_cache", "venv", ".venv", "env", ".env"
        ]
    )

    # Processing limits
    max_file_size_mb: int = Field(default=10, ge=1, le=100)
    embed_batch_size: int = Field(default=32, ge=1, le=512)

    # Chunk formation
    include_comments: bool = True
    include_signature: bool = True

    # Language filter; empty means every supported language
    languages: List[str] = Field(default_factory=list)

    @field_validator('exclude_dirs', 'languages')
    @classmethod
    def strip_entries(cls, v: List[str]) -> List[str]:
        return [entry.strip() for entry in v if entry.strip()]

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes"""
        return self.max_file_size_mb * 1024 * 1024


class ProjectConfig(BaseModel):
    """Project-specific configuration with validation"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Project identification
    name: str
    path: Path

    # Component configurations
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    embedding: EmbeddingModelConfig = Field(default_factory=EmbeddingModelConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)

    # Project metadata
    description: Optional[str] = None
    version: str = "1.0.0"

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate project name"""
        if not v or not v.replace('-', '').replace('_', '').replace(' ', '').replace('.', '').isalnum():
            raise ValueError('Project name must be alphanumeric with dashes, underscores, dots or spaces')
        return v.strip()

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: Path) -> Path:
        """Validate project path exists"""
        if not v.exists():
            raise ValueError(f'Project path does not exist: {v}')
        if not v.is_dir():
            raise ValueError(f'Project path is not a directory: {v}')
        return v.resolve()

    def get_config_dir(self) -> Path:
        """Get project configuration directory"""
        return self.path / ".workspace-indexer"

    def get_config_file(self) -> Path:
        """Get project configuration file path"""
        return self.get_config_dir() / "config.json"

    @property
    def is_initialized(self) -> bool:
        """Check if project is properly initialized"""
        return self.get_config_file().exists()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectConfig':
        """Create from dictionary"""
        if 'path' in data:
            data['path'] = Path(data['path'])
        if 'embedding' in data and 'model_base_path' in data['embedding']:
            data['embedding']['model_base_path'] = Path(data['embedding']['model_base_path'])
        return cls(**data)


class GlobalSettings(BaseSettings):
    """Global application settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="WSI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Default configurations
    default_qdrant_url: str = "http://localhost:6333"
    default_model_name: str = "all-MiniLM-L6-v2"

    # Global directories
    global_cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "workspace-indexer"
    )
    global_config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".workspace-indexer"
    )

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_to_file: bool = False

    @property
    def model_base_path(self) -> Path:
        """Default base path for model artifacts"""
        return self.global_cache_dir

    def get_log_file(self) -> Optional[Path]:
        """Get log file path if logging to file is enabled"""
        if not self.log_to_file:
            return None
        log_dir = self.global_config_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir / "workspace-indexer.log"
