"""Pooling helpers for transformer hidden states."""

import numpy as np


def mean_pooling(hidden_states: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
    """
    Average token vectors weighted by the attention mask.

    Args:
        hidden_states: (batch, tokens, hidden) array
        attention_mask: (batch, tokens) array of 0/1

    Returns:
        (batch, hidden) float32 array
    """
    mask = attention_mask.astype(np.float32)[..., np.newaxis]
    summed = np.sum(hidden_states.astype(np.float32) * mask, axis=1)
    counts = np.clip(mask.sum(axis=1), 1e-9, None)
    return summed / counts


def l2_normalize(vectors: np.ndarray) -> np.ndarray:
    """Scale each row to unit length; zero rows stay zero"""
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    return vectors / np.clip(norms, 1e-12, None)
