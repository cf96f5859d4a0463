import unittest

from s3_browser_core.responses import (
    Err,
    Ok,
    ResponseError,
    invalid_parameters,
    multi_status,
    prevented,
)


class ResponseTests(unittest.TestCase):
    def test_ok_defaults_and_envelope(self):
        response = Ok(message="done", data={"key": "a.txt"})

        self.assertTrue(response.successful)
        self.assertEqual(200, response.status_code)
        self.assertIsNone(response.error_code)
        self.assertEqual(
            {"successful": True, "status_code": 200, "message": "done", "data": {"key": "a.txt"}},
            response.to_dict(),
        )

    def test_err_envelope_includes_error_code(self):
        response = Err(404, "folder_not_found", "missing", {"folder_path": "a/"})

        self.assertFalse(response.successful)
        self.assertEqual("folder_not_found", response.error_code)
        self.assertEqual("folder_not_found", response.to_dict()["error_code"])

    def test_map_transforms_ok_and_skips_err(self):
        ok = Ok(data={"count": 1}).map(lambda data: {"count": data["count"] + 1})
        err = Err(400, "invalid_parameters").map(lambda data: {"count": 99})

        self.assertEqual({"count": 2}, ok.data)
        self.assertEqual({}, err.data)

    def test_and_then_and_or_else(self):
        chained = Ok(data={"n": 2}).and_then(lambda ok: Ok(201, data={"n": ok.data["n"] * 2}))
        recovered = Err(404, "object_not_found").or_else(lambda err: Ok(data={"recovered": err.code}))
        untouched = Err(403, "deletion_prevented").and_then(lambda ok: Ok())

        self.assertEqual(201, chained.status_code)
        self.assertEqual({"n": 4}, chained.data)
        self.assertEqual({"recovered": "object_not_found"}, recovered.data)
        self.assertEqual("deletion_prevented", untouched.error_code)

    def test_unwrap_raises_for_err(self):
        self.assertEqual({"a": 1}, Ok(data={"a": 1}).unwrap())
        with self.assertRaises(ResponseError) as ctx:
            Err(400, "batch_delete_failed", "nothing deleted").unwrap()
        self.assertEqual("batch_delete_failed", ctx.exception.response.code)

    def test_helpers(self):
        self.assertEqual(400, invalid_parameters("bad").status_code)
        self.assertEqual("invalid_parameters", invalid_parameters("bad").code)
        veto = prevented("deletion_prevented", "no", key="a")
        self.assertEqual((403, "deletion_prevented", {"key": "a"}), (veto.status_code, veto.code, veto.data))

    def test_multi_status(self):
        kwargs = dict(
            success_message="ok",
            partial_message="partial",
            failure_message="failed",
            failure_code="batch_delete_failed",
            data={},
        )

        self.assertEqual(200, multi_status(success_count=3, failure_count=0, **kwargs).status_code)
        partial = multi_status(success_count=2, failure_count=1, **kwargs)
        self.assertTrue(partial.successful)
        self.assertEqual(207, partial.status_code)
        failed = multi_status(success_count=0, failure_count=2, **kwargs)
        self.assertFalse(failed.successful)
        self.assertEqual("batch_delete_failed", failed.error_code)


if __name__ == "__main__":
    unittest.main()
