"""Supabase clients and the tracker API. Clients are cached via Streamlit."""
import streamlit as st
from supabase import Client, create_client

from tracker.api import TrackerAPI
from tracker.auth import AuthService
from tracker.config import Settings
from tracker.database import TestRecordStore
from tracker.notify import Notifier


def _env_client() -> Client:
    settings = Settings.from_env()
    return create_client(settings.supabase_url, settings.supabase_key)


def build_api(data_client: Client, auth_client: Client, settings: Settings) -> TrackerAPI:
    store = TestRecordStore(data_client)
    return TrackerAPI(store, AuthService(auth_client, store), Notifier(settings))


@st.cache_resource
def get_supabase() -> Client:
    return _env_client()


@st.cache_resource
def get_auth_client() -> Client:
    """Separate client for sign-in calls so a login never changes the data client's headers."""
    return _env_client()


@st.cache_resource
def get_api() -> TrackerAPI:
    return build_api(get_supabase(), get_auth_client(), Settings.from_env())


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


def get_store_uncached() -> TestRecordStore:
    return TestRecordStore(get_supabase_uncached())
