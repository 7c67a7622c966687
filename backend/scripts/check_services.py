#!/usr/bin/env python3
"""
Service Health Check Script
Checks the database, Celery broker, media storage, SMTP relay and the API
"""
import sys
import os
import smtplib
from typing import Tuple

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine, text
import redis
import requests
from core.config import settings
from services.storage import StorageService, StorageError


# ANSI color codes for terminal output
class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    MAGENTA = '\033[95m'
    CYAN = '\033[96m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


def print_header():
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}  {settings.APP_NAME} - Service Health Check{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.RESET}\n")


def print_status(service: str, status: bool, message: str = ""):
    """Print colored status for a service"""
    icon = f"{Colors.GREEN}✓{Colors.RESET}" if status else f"{Colors.RED}✗{Colors.RESET}"
    status_text = f"{Colors.GREEN}HEALTHY{Colors.RESET}" if status else f"{Colors.RED}FAILED{Colors.RESET}"

    print(f"{icon} {Colors.BOLD}{service:<25}{Colors.RESET} [{status_text}]", end="")
    print(f" - {message}" if message else "")


def check_database() -> Tuple[bool, str]:
    engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, engine.dialect.name
    except Exception as e:
        return False, f"Connection failed: {str(e)[:50]}"
    finally:
        engine.dispose()


def check_broker() -> Tuple[bool, str]:
    """Celery broker (Redis)"""
    if settings.CELERY_TASK_ALWAYS_EAGER:
        return True, "Eager mode, broker not used"

    try:
        client = redis.from_url(settings.CELERY_BROKER_URL, socket_connect_timeout=5)
        client.ping()
        version = client.info().get('redis_version', 'unknown')
        client.close()
        return True, f"Redis {version}"
    except redis.RedisError as e:
        return False, f"Connection failed: {str(e)[:50]}"


def check_storage() -> Tuple[bool, str]:
    """Configured media backend and its buckets"""
    required = [settings.MINIO_BUCKET_VIDEOS, settings.MINIO_BUCKET_THUMBNAILS, settings.MINIO_BUCKET_UPLOADS]

    try:
        storage = StorageService()
    except StorageError as e:
        return False, str(e)

    try:
        if storage.backend == "local":
            missing = [b for b in required if not os.path.isdir(os.path.join(settings.LOCAL_MEDIA_ROOT, b))]
        elif storage.backend == "minio":
            existing = {b.name for b in storage.minio_client.list_buckets()}
            missing = [b for b in required if b not in existing]
        else:
            storage.s3_client.head_bucket(Bucket=storage.bucket_name)
            missing = []
    except Exception as e:
        return False, f"Connection failed: {str(e)[:50]}"

    if missing:
        return True, f"{storage.backend} (missing: {', '.join(missing)})"
    return True, f"{storage.backend} (all buckets present)"


def check_smtp() -> Tuple[bool, str]:
    if not settings.SMTP_HOST:
        return True, "Not configured, emails are logged only"

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=5) as server:
            code, _ = server.noop()
        return code == 250, f"{settings.SMTP_HOST}:{settings.SMTP_PORT}"
    except (smtplib.SMTPException, OSError) as e:
        return False, f"Connection failed: {str(e)[:50]}"


def check_api() -> Tuple[bool, str]:
    try:
        response = requests.get(f"{settings.API_URL}/health", timeout=5)
    except requests.exceptions.ConnectionError:
        return False, "Connection refused (API not running?)"
    except requests.exceptions.RequestException as e:
        return False, f"Request failed: {str(e)[:50]}"

    if response.status_code != 200:
        return False, f"HTTP {response.status_code}"
    return True, f"API status: {response.json().get('status', 'unknown')}"


def main():
    print_header()
    all_healthy = True

    print(f"{Colors.BOLD}{Colors.MAGENTA}Infrastructure:{Colors.RESET}\n")
    checks = [
        ("Database", check_database),
        ("Celery Broker", check_broker),
        ("Media Storage", check_storage),
        ("SMTP Relay", check_smtp),
    ]
    for service_name, check_func in checks:
        healthy, message = check_func()
        print_status(service_name, healthy, message)
        all_healthy = all_healthy and healthy

    print(f"\n{Colors.BOLD}{Colors.MAGENTA}Backend API:{Colors.RESET}\n")
    healthy, message = check_api()
    print_status("FastAPI Backend", healthy, message)
    all_healthy = all_healthy and healthy

    print(f"\n{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.RESET}")
    if all_healthy:
        print(f"{Colors.BOLD}{Colors.GREEN}✓ All services are healthy!{Colors.RESET}\n")
        sys.exit(0)

    print(f"{Colors.BOLD}{Colors.RED}✗ Some services are not healthy!{Colors.RESET}")
    print(f"{Colors.YELLOW}Please check the failed services above.{Colors.RESET}\n")
    sys.exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Health check interrupted by user.{Colors.RESET}\n")
        sys.exit(130)
