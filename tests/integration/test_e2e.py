#!/usr/bin/env python3
# tests/integration/test_e2e.py
# End-to-end integration tests for the full stack (both services + PostgreSQL).
# Run directly against a running stack:  python tests/integration/test_e2e.py
# Under pytest the module is skipped unless E2E_BASE_URL is set.

import os
import sys
import time
import uuid

import pytest
import requests

if __name__ != "__main__" and not os.getenv("E2E_BASE_URL"):
    pytest.skip("E2E_BASE_URL not set; no running stack to test", allow_module_level=True)

# Base URL for the Statistics API (public endpoint)
BASE_URL = os.getenv("E2E_BASE_URL", "http://localhost:8080")

# Unique per run so repeated runs against the same database stay independent
RUN_ID = uuid.uuid4().hex[:8]

# ANSI color codes for output
GREEN = '\033[92m'
RED = '\033[91m'
YELLOW = '\033[93m'
RESET = '\033[0m'

def print_test(message):
    """Print test name"""
    print(f"\n{YELLOW}TEST:{RESET} {message}")

def print_pass(message):
    """Print success message"""
    print(f"{GREEN}✓{RESET} {message}")

def print_fail(message):
    """Print failure message"""
    print(f"{RED}✗{RESET} {message}")

def user(name):
    return f"e2e-{RUN_ID}-{name}"

def get_count(device_type):
    response = requests.get(f"{BASE_URL}/Log/auth/statistics", params={"deviceType": device_type})
    assert response.status_code == 200, f"Expected 200, got {response.status_code} for {device_type}"
    return response.json()["count"]

def wait_for_api(max_retries=30, delay=2):
    """Wait for the API to be ready"""
    print(f"\n{YELLOW}Waiting for API to be ready...{RESET}")
    for i in range(max_retries):
        try:
            response = requests.get(f"{BASE_URL}/health", timeout=2)
            if response.status_code == 200:
                print_pass(f"API is ready after {i * delay} seconds")
                return True
        except requests.exceptions.RequestException:
            pass
        if i < max_retries - 1:
            time.sleep(delay)
    print_fail(f"API did not become ready after {max_retries * delay} seconds")
    return False

def test_health_check():
    """Test GET /health endpoint"""
    print_test("Health check endpoint")

    response = requests.get(f"{BASE_URL}/health")

    assert response.status_code == 200, f"Expected 200, got {response.status_code}"
    data = response.json()
    assert data["status"] == "ok", f"Expected status 'ok', got {data.get('status')}"
    assert data["service"] == "statistics-api", f"Expected service 'statistics-api', got {data.get('service')}"

    print_pass("Health check passed")

def test_post_valid_devices():
    """Test POST /Log/auth with valid device types"""
    print_test("POST /Log/auth - valid device types")

    for device_type in ("iOS", "Android", "Watch", "TV"):
        before = get_count(device_type)
        payload = {"userKey": user(f"valid-{device_type}"), "deviceType": device_type}

        response = requests.post(f"{BASE_URL}/Log/auth", json=payload)
        assert response.status_code == 200, f"Expected 200, got {response.status_code} for {device_type}"
        assert response.json() == {"statusCode": 200, "message": "success"}
        assert get_count(device_type) == before + 1, f"{device_type} count did not grow by one"
        print_pass(f"  {device_type}: registered successfully")

def test_post_invalid_devices():
    """Test POST /Log/auth with invalid device types"""
    print_test("POST /Log/auth - invalid device types")

    for device_type in ("Windows", "Linux", "Tablet", "ios"):
        payload = {"userKey": user("invalid"), "deviceType": device_type}
        response = requests.post(f"{BASE_URL}/Log/auth", json=payload)
        assert response.status_code == 400, f"Expected 400, got {response.status_code} for {payload}"
        assert response.json() == {"statusCode": 400, "message": "bad_request"}
        print_pass(f"  {device_type}: correctly rejected")

def test_get_statistics_invalid():
    """Test GET /Log/auth/statistics with invalid device type"""
    print_test("GET /Log/auth/statistics - invalid device type")

    response = requests.get(f"{BASE_URL}/Log/auth/statistics?deviceType=Desktop")
    assert response.status_code == 200, f"Expected 200, got {response.status_code}"
    assert response.json() == {"deviceType": "Desktop", "count": -1}
    print_pass("Invalid device type returns count -1")

def test_multiple_registrations_same_user():
    """Repeated logins for one (user, device type) pair keep a single registration"""
    print_test("POST /Log/auth - same user, multiple times")

    payload = {"userKey": user("multi"), "deviceType": "iOS"}
    before = get_count("iOS")

    for i in range(3):
        response = requests.post(f"{BASE_URL}/Log/auth", json=payload)
        assert response.status_code == 200, f"Registration {i+1} failed"
        assert response.json() == {"statusCode": 200, "message": "success"}

    after = get_count("iOS")
    assert after == before + 1, f"Expected count {before + 1}, got {after}"
    print_pass(f"Same user logged in 3 times, iOS count grew by one: {after}")

def test_count_after_mixed_logins():
    """Distinct users are counted per device type"""
    print_test("GET /Log/auth/statistics - mixed logins")

    ios_before = get_count("iOS")
    android_before = get_count("Android")

    for name, device_type in [("mixed-1", "iOS"), ("mixed-2", "iOS"), ("mixed-3", "Android")]:
        response = requests.post(f"{BASE_URL}/Log/auth", json={"userKey": user(name), "deviceType": device_type})
        assert response.status_code == 200

    assert get_count("iOS") == ios_before + 2
    assert get_count("Android") == android_before + 1
    print_pass("Counts reflect distinct users per device type")

def run_all_tests():
    """Run all integration tests"""
    print("=" * 60)
    print("Integration Tests - End-to-End")
    print("=" * 60)

    # Wait for API to be ready
    if not wait_for_api():
        print_fail("API failed to start. Aborting tests.")
        sys.exit(1)

    tests = [
        test_health_check,
        test_post_valid_devices,
        test_post_invalid_devices,
        test_get_statistics_invalid,
        test_multiple_registrations_same_user,
        test_count_after_mixed_logins,
    ]

    failed_tests = []

    for test in tests:
        try:
            test()
        except AssertionError as e:
            print_fail(f"FAILED: {test.__name__}")
            print(f"  Error: {e}")
            failed_tests.append(test.__name__)
        except Exception as e:
            print_fail(f"ERROR: {test.__name__}")
            print(f"  Error: {e}")
            failed_tests.append(test.__name__)

    # Summary
    print("\n" + "=" * 60)
    total_tests = len(tests)
    passed_tests = total_tests - len(failed_tests)

    if failed_tests:
        print(f"{RED}FAILED{RESET}: {len(failed_tests)}/{total_tests} tests failed")
        print(f"Failed tests: {', '.join(failed_tests)}")
        sys.exit(1)
    else:
        print(f"{GREEN}SUCCESS{RESET}: All {passed_tests} integration tests passed ✓")
        sys.exit(0)

if __name__ == "__main__":
    run_all_tests()
