# SPDX-License-Identifier: Apache-2.0
"""
Fireworks AI Inference Tests

This package contains the test suite for the Fireworks AI inference adapter,
covering settings parsing, request/response codecs, the HTTP sender and
chunked embedding inference. HTTP is faked with `httpx.MockTransport`.
"""
