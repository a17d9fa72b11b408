"""
Load profile for the relayer. Point it at a dry-run instance (TAPMINT_DRY_RUN=1):

    TAP_KEY=... locust -f locustfile.py --host http://localhost:8000
"""

import os
import random
import uuid

from locust import HttpUser, between, task

TAP_KEY = os.getenv("TAP_KEY", "")


def random_address() -> str:
    return "0x" + "".join(random.choices("0123456789abcdef", k=40))


class TapUser(HttpUser):
    wait_time = between(1, 2)

    def on_start(self):
        # one address per simulated visitor; each visitor spoofs its own IP
        self.address = random_address()
        self.ip = ".".join(str(random.randint(1, 254)) for _ in range(4))

    @task(3)
    def minted(self):
        self.client.get("/api/minted", params={"address": self.address}, name="/api/minted")

    @task(1)
    def mint_with_retry(self):
        body = {"recipient": self.address, "requestId": str(uuid.uuid4())}
        headers = {"x-tap-key": TAP_KEY, "x-forwarded-for": self.ip}
        self.client.post("/api/mint", json=body, headers=headers, name="/api/mint")
        # retry with the same requestId must return the cached body
        self.client.post("/api/mint", json=body, headers=headers, name="/api/mint (retry)")

    @task(1)
    def health(self):
        self.client.get("/api/health")
