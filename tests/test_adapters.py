import json
import os
import tempfile
import unittest
from decimal import Decimal
from unittest import mock

from lineage.adapters.labels.static_label_adapter import StaticAddressLabelAdapter
from lineage.adapters.ledger.blockcypher_ledger_adapter import BlockCypherLedgerAdapter
from lineage.adapters.ledger.rate_limiter import backoff_delay
from lineage.adapters.ledger.static_ledger_adapter import StaticLedgerAdapter
from lineage.core.enums import AddressCategory
from lineage.core.errors import DataSourceError, ProviderUnavailableError

TX_HASH = "f4184fc596403b9d638783cf57adfe4c75c605f6356fbc91338530e9831e9e16"

BLOCKCYPHER_TX = {
    "hash": TX_HASH,
    "block_height": 170,
    "confirmed": "2009-01-12T03:30:25Z",
    "fees": 0,
    "confirmations": 800000,
    "inputs": [
        {
            "prev_hash": "0437cd7f8525ceed2324359c2d0ba26006d92d856a9c20fa0241106ee5a597c9",
            "output_value": 5000000000,
            "addresses": ["12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S"],
        }
    ],
    "outputs": [
        {
            "value": 1000000000,
            "addresses": ["1Q2TWHE3GMdB6BZKafqwxXtWAWgFt5Jvm3"],
            "spent_by": "ea44e97271691990157559d0bdd9959e02790c34db6c006d779e82fa5aee708e",
        },
        {"value": 4000000000, "addresses": ["12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S"]},
    ],
}


def _response(status: int, payload=None):
    resp = mock.Mock()
    resp.status_code = status
    resp.json.return_value = payload if payload is not None else {}
    resp.raise_for_status.return_value = None
    return resp


class BlockCypherLedgerAdapterTests(unittest.TestCase):
    def _adapter(self, *responses) -> BlockCypherLedgerAdapter:
        session = mock.Mock()
        session.get.side_effect = list(responses)
        return BlockCypherLedgerAdapter(token="t0k", requests_per_sec=1000.0, session=session)

    def test_transaction_is_parsed_into_coin_units(self) -> None:
        adapter = self._adapter(_response(200, BLOCKCYPHER_TX))

        record = adapter.fetch_transaction(TX_HASH)

        self.assertEqual(record.tx_hash, TX_HASH)
        self.assertEqual(record.timestamp, 1231731025)
        self.assertEqual(record.block_height, 170)
        self.assertEqual(record.inputs[0].value, Decimal("50"))
        self.assertEqual(record.inputs[0].prev_tx_hash, BLOCKCYPHER_TX["inputs"][0]["prev_hash"])
        first, second = record.outputs
        self.assertEqual(first.value, Decimal("10"))
        self.assertTrue(first.spent)
        self.assertEqual(first.spending_tx_hash, BLOCKCYPHER_TX["outputs"][0]["spent_by"])
        self.assertFalse(second.spent)
        self.assertIsNone(second.spending_tx_hash)

        _, kwargs = adapter._session.get.call_args
        self.assertEqual(kwargs["params"]["token"], "t0k")

    @mock.patch("lineage.adapters.ledger.blockcypher_ledger_adapter.backoff_sleep")
    def test_rate_limit_is_retried(self, sleep) -> None:
        adapter = self._adapter(_response(429), _response(200, BLOCKCYPHER_TX))

        record = adapter.fetch_transaction(TX_HASH)

        self.assertEqual(record.tx_hash, TX_HASH)
        sleep.assert_called_once_with(0)

    @mock.patch("lineage.adapters.ledger.blockcypher_ledger_adapter.backoff_sleep")
    def test_exhausted_retries_raise_provider_unavailable(self, sleep) -> None:
        adapter = self._adapter(_response(429), _response(429), _response(429))

        with self.assertRaises(ProviderUnavailableError):
            adapter.fetch_transaction(TX_HASH)
        self.assertEqual(sleep.call_count, 3)

    def test_not_found_is_not_retried(self) -> None:
        adapter = self._adapter(_response(404))

        with self.assertRaises(DataSourceError):
            adapter.fetch_transaction(TX_HASH)
        self.assertEqual(adapter._session.get.call_count, 1)

    def test_address_history(self) -> None:
        adapter = self._adapter(_response(200, {"address": "x", "txs": [BLOCKCYPHER_TX, {"nohash": 1}]}))

        history = adapter.fetch_address_history("12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S", 5)

        self.assertEqual([r.tx_hash for r in history], [TX_HASH])
        args, kwargs = adapter._session.get.call_args
        self.assertTrue(args[0].endswith("/addrs/12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S/full"))
        self.assertEqual(kwargs["params"]["limit"], 5)


class BackoffTests(unittest.TestCase):
    def test_delay_grows_and_is_capped(self) -> None:
        self.assertLessEqual(backoff_delay(0), 0.5 * 1.3)
        self.assertGreaterEqual(backoff_delay(3), 4.0 * 0.7)
        self.assertLessEqual(backoff_delay(10), 8.0 * 1.3)


class StaticAdapterTests(unittest.TestCase):
    def test_ledger_fixture_round_trip_from_file(self) -> None:
        payload = {
            "transactions": [
                {
                    "hash": TX_HASH,
                    "timestamp": 1231731025,
                    "inputs": [{"address": "a", "value": "50"}],
                    "outputs": [{"address": "b", "value": "10", "spending_tx_hash": "ff" * 32}],
                }
            ]
        }
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "ledger.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f)

            ledger = StaticLedgerAdapter.from_json(path)

        record = ledger.fetch_transaction(TX_HASH)
        self.assertTrue(record.outputs[0].spent)
        self.assertEqual(record.outputs[0].value, Decimal("10"))
        with self.assertRaises(DataSourceError):
            ledger.fetch_transaction("00" * 32)

    def test_label_directory_sections(self) -> None:
        directory = {
            "exchanges": {
                "binance": {"name": "Binance", "country": "Malta", "riskLevel": "medium", "addresses": ["1Ex1", "1Ex2"]}
            },
            "mixers": {"wasabi": {"name": "Wasabi Wallet", "riskLevel": "high", "addresses": ["bc1mix"]}},
            "darknet": {"hydra": {"addresses": ["1Dark"]}},
        }

        labels = StaticAddressLabelAdapter.from_directory(directory)

        self.assertEqual(len(labels), 4)
        self.assertEqual(labels.identify("1Ex2").category, AddressCategory.EXCHANGE)
        self.assertEqual(labels.identify("1Ex2").country, "Malta")
        self.assertEqual(labels.identify("bc1mix").name, "Wasabi Wallet")
        self.assertEqual(labels.identify("1Dark").name, "hydra")
        self.assertIsNone(labels.identify("1Unknown"))

    def test_missing_label_file_disables_lookups(self) -> None:
        labels = StaticAddressLabelAdapter.from_json("/nonexistent/labels.json")

        self.assertEqual(len(labels), 0)


if __name__ == "__main__":
    unittest.main()
