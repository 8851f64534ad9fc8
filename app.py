"""Web chat interface using Streamlit."""

import asyncio
import tempfile
import threading
import uuid
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import streamlit as st

from groundchat import ChatHandler, IncomingMessage, RAGPipeline, Role
from groundchat.config import config
from groundchat.errors import ConfigurationError, EmbeddingError

T = TypeVar("T")

config.setup_logging()
logger = config.get_logger(__name__)


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """Start one background event loop shared by every browser session.

    Returns:
        asyncio.AbstractEventLoop: Loop running in a daemon thread.
    """
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True).start()
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


@st.cache_resource
def get_pipeline() -> RAGPipeline:
    """Build and initialize the pipeline once per server process.

    Returns:
        RAGPipeline: Initialized pipeline shared by all sessions.
    """
    pipeline = RAGPipeline()
    pipeline.initialize()
    logger.info("RAG pipeline initialized successfully")
    return pipeline


class SessionState:
    """Centralized session state management."""

    @staticmethod
    def initialize() -> None:
        """Initialize all session state variables."""
        if "session_key" not in st.session_state:
            st.session_state.session_key = f"web-{uuid.uuid4()}"

    @staticmethod
    def session_key() -> str:
        return st.session_state.session_key


def validate_configuration() -> bool:
    """Validate application configuration and show user feedback.

    Returns:
        bool: True if configuration is valid, False otherwise.
    """
    try:
        config.validate()
    except ConfigurationError as e:
        st.error(f"Configuration Error: {e}")
        return False
    else:
        return True


def process_document(pipeline: RAGPipeline, uploaded_file) -> bool:  # noqa: ANN001
    """Ingest an uploaded file into the knowledge base.

    Returns:
        bool: True if document processing succeeds, False otherwise.
    """
    try:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir) / Path(uploaded_file.name).name
            tmp_path.write_bytes(uploaded_file.getbuffer())
            with st.spinner(f"Processing '{uploaded_file.name}'..."):
                count = run_async(pipeline.process_document(tmp_path))
    except (OSError, ValueError, EmbeddingError) as e:
        logger.exception("Document processing failed")
        st.error(f"Failed to process document: {e}")
        return False

    st.success(f"Added '{uploaded_file.name}' to the knowledge base ({count} chunks).")
    return True


def render_sidebar(pipeline: RAGPipeline) -> None:
    """Render the sidebar with ingestion and conversation controls."""
    with st.sidebar:
        st.header("Knowledge Base")
        uploaded_file = st.file_uploader(
            "Add a PDF, Markdown or TXT document",
            type=["pdf", "md", "txt"],
        )
        if uploaded_file and st.button("Add Document", use_container_width=True):
            process_document(pipeline, uploaded_file)

        st.divider()
        st.subheader("Conversation")
        history_length = len(
            pipeline.conversation_store.history(SessionState.session_key())
        )
        st.write(f"**Turns remembered:** {history_length} / {pipeline.max_history}")
        if st.button("Clear History", use_container_width=True):
            pipeline.clear(SessionState.session_key())
            st.success("Conversation cleared!")
            st.rerun()

        st.divider()
        st.markdown(f"**Embedding model:** {config.EMBEDDING_MODEL}")
        st.markdown(f"**Chat model:** {config.CHAT_MODEL}")
        st.markdown(f"**Top K:** {pipeline.top_k}")


def render_chat(pipeline: RAGPipeline, handler: ChatHandler) -> None:
    """Render the conversation and the chat input."""
    for turn in pipeline.conversation_store.history(SessionState.session_key()):
        with st.chat_message("user" if turn.role is Role.USER else "assistant"):
            st.write(turn.text)

    question = st.chat_input("Ask a question about the knowledge base...")
    if not question:
        return

    with st.chat_message("user"):
        st.write(question)

    with st.chat_message("assistant"), st.spinner("Thinking..."):
        reply = run_async(
            handler.handle(
                IncomingMessage(session_key=SessionState.session_key(), text=question)
            )
        )
        st.write(reply or "")


def main() -> None:
    """Main entry point for the Streamlit web application."""
    st.set_page_config(page_title="GroundChat", layout="wide")
    SessionState.initialize()

    st.title("GroundChat")
    st.caption("Answers come only from the documents in the knowledge base.")

    if not validate_configuration():
        return

    try:
        pipeline = get_pipeline()
    except ConfigurationError as e:
        logger.exception("Failed to initialize pipeline")
        st.error(f"Failed to initialize pipeline: {e}")
        return

    handler = ChatHandler(pipeline)
    render_sidebar(pipeline)
    render_chat(pipeline, handler)


if __name__ == "__main__":
    main()
