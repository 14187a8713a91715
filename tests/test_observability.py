"""Tests for logging setup and per-order log context."""

import json

import pytest
from loguru import logger

from clinical_validation.observability import order_context, setup_logging

from conftest import model_json


@pytest.fixture
def captured():
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


class TestOrderContext:
    def test_binds_order_id_inside_block_only(self, captured):
        with order_context("ORD-42", specialty="Orthopedics"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = captured[-2], captured[-1]
        assert inside["extra"]["order_id"] == "ORD-42"
        assert inside["extra"]["specialty"] == "Orthopedics"
        assert "order_id" not in outside["extra"]

    def test_validation_logs_carry_order_but_not_dictation(self, engine, scripted_client, captured):
        dictation = "Patient describes zebrastripe sensation over left forearm"
        scripted_client.queue(model_json("invalid", 1, "Unsupported."))

        engine.validate("ORD-7", dictation, "Vascular Surgery")

        order_records = [r for r in captured if r["extra"].get("order_id") == "ORD-7"]
        assert order_records
        for record in captured:
            assert dictation not in record["message"]


class TestSetupLogging:
    def test_json_file_sink(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.jsonl"
        setup_logging("WARNING", json_logs=True, log_file=log_file)
        try:
            logger.info("written to file only")
            logger.complete()
        finally:
            setup_logging("INFO")

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        messages = [json.loads(line)["record"]["message"] for line in lines]
        assert "written to file only" in messages
