"""
External client configuration.
Uses Supabase Storage for raw message objects and Amazon SES v2 for outbound mail.

Clients are created lazily on first use so that importing the app (for tests or
tooling) does not require credentials.
"""

import os
from functools import lru_cache

import boto3
from botocore.config import Config
from dotenv import load_dotenv
from supabase import Client, ClientOptions, create_client

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# Bucket holding raw messages: inbox at root keys, plus sent/ and trash/
MAIL_BUCKET = os.getenv("MAIL_BUCKET", "mail")

SES_REGION = os.getenv("SES_REGION") or os.getenv("AWS_REGION", "us-east-1")

# Per-call timeout applied to every blocking store / SES call
STORE_CALL_TIMEOUT_SECONDS = float(os.getenv("STORE_CALL_TIMEOUT_SECONDS", "15"))


@lru_cache
def get_supabase_admin() -> Client:
    """
    Return the service-role Supabase client (bypasses RLS).

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is not configured
    """
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set for storage operations")

    return create_client(
        SUPABASE_URL,
        SUPABASE_SERVICE_KEY,
        options=ClientOptions(storage_client_timeout=int(STORE_CALL_TIMEOUT_SECONDS)),
    )


@lru_cache
def get_ses_client():
    """
    Return a boto3 SES v2 client.

    Credentials come from AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY when set,
    otherwise from the default boto3 credential chain. Retries are disabled:
    every send is attempted exactly once per request.
    """
    return boto3.client(
        "sesv2",
        region_name=SES_REGION,
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID") or None,
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY") or None,
        config=Config(
            connect_timeout=5,
            read_timeout=STORE_CALL_TIMEOUT_SECONDS,
            retries={"max_attempts": 1, "mode": "standard"},
        ),
    )
