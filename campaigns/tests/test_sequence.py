from datetime import timedelta

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from campaigns.sequence import Step, normalize_sequence


class NormalizeSequenceTests(SimpleTestCase):
    def test_steps_are_renumbered_in_list_order(self) -> None:
        steps = normalize_sequence(
            [
                {"step_number": 7, "subject": "One", "message": "First"},
                {"step_number": 3, "subject": "Two", "message": "Second", "delay_days": "2"},
            ]
        )

        self.assertEqual([item["step_number"] for item in steps], [1, 2])
        self.assertEqual(steps[1]["delay_days"], 2)
        self.assertEqual(steps[1]["delay_hours"], 0)

    def test_empty_sequence_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            normalize_sequence([])

        self.assertIn("At least one email in sequence is required.", ctx.exception.message_dict["sequence"])

    def test_every_problem_is_reported(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            normalize_sequence(
                [
                    {"subject": "", "message": "Body"},
                    {"subject": "Hi", "message": "Body", "delay_days": -1},
                    {"subject": "Hi", "message": "Body", "delay_hours": 1.5},
                    {"subject": "Hi", "message": "Body", "send_sms": True},
                ]
            )

        errors = ctx.exception.message_dict["sequence"]
        self.assertEqual(len(errors), 4)
        self.assertIn("Step 1: email subject is required.", errors)
        self.assertIn("Step 2: delay_days cannot be negative.", errors)
        self.assertIn("Step 3: delay_hours must be a whole number.", errors)
        self.assertIn("Step 4: sms_message is required when send_sms is enabled.", errors)

    def test_step_delay(self) -> None:
        step = Step.from_dict({"step_number": 1, "subject": "s", "message": "m", "delay_days": 1, "delay_hours": 5})

        self.assertEqual(step.delay, timedelta(days=1, hours=5))
