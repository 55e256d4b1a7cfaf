"""
Helper module to read history exports from either disk or Streamlit uploaded buffers.
"""
import os

import pandas as pd
import streamlit as st


def get_uploaded_files():
    """Uploaded buffers keyed by metric file key, or {} outside a Streamlit session."""
    try:
        return dict(st.session_state.get('uploaded_files', {}))
    except (AttributeError, RuntimeError):
        # st.session_state not available (running outside Streamlit context)
        return {}


def get_file_source(file_key, file_path, uploaded_files=None):
    """
    Returns a file-like object or path for reading an export.

    Priority:
    1. Uploaded buffer in uploaded_files[file_key] (default: st.session_state.uploaded_files)
    2. file_path on disk

    Pass uploaded_files explicitly when calling from a worker thread, where the
    Streamlit session is not reachable.

    Returns:
        tuple: (source, is_uploaded); source is None when neither exists
    """
    if uploaded_files is None:
        uploaded_files = get_uploaded_files()

    if file_key in uploaded_files:
        buffer = uploaded_files[file_key]
        if hasattr(buffer, 'seek'):
            buffer.seek(0)
        return buffer, True
    if os.path.isfile(os.path.abspath(file_path)):
        return file_path, False
    return None, False


def safe_read_csv(file_key, file_path, uploaded_files=None, **kwargs):
    """
    Read an export from an uploaded buffer or disk.

    When no source is found the path is still handed to pd.read_csv so that a
    patched reader (tests) can serve it; a real miss raises FileNotFoundError.

    Args:
        file_key: key of the uploaded buffer
        file_path: fallback file path
        uploaded_files: optional {file_key: buffer} mapping
        **kwargs: passed to pd.read_csv()

    Returns:
        pd.DataFrame
    """
    source, _ = get_file_source(file_key, file_path, uploaded_files)
    try:
        return pd.read_csv(file_path if source is None else source, **kwargs)
    except FileNotFoundError:
        raise FileNotFoundError(f"File not found: {file_path} (and no uploaded file)")
