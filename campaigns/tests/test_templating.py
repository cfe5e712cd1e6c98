from datetime import date, datetime, timezone as dt_timezone

from django.test import SimpleTestCase, override_settings

from campaigns.templating import format_date, render, truncate_sms


class RenderTests(SimpleTestCase):
    def test_placeholders_match_any_case_and_padding(self) -> None:
        rendered = render("Hi {{ NAME }}, see you at {{eventtitle}}", {"user_name": "Ana Diaz", "event_title": "Hot Yoga"})

        self.assertEqual(rendered, "Hi Ana Diaz, see you at Hot Yoga")

    def test_missing_variables_render_empty(self) -> None:
        rendered = render(
            "Hi {{name}}, your class {{eventTitle}} is on {{eventDate}}",
            {"name": "Ana", "eventTitle": "Mat Flow"},
        )

        self.assertEqual(rendered, "Hi Ana, your class Mat Flow is on ")

    def test_first_name_is_derived_from_name(self) -> None:
        self.assertEqual(render("Hey {{firstName}}!", {"name": "Ana Diaz"}), "Hey Ana!")

    def test_unknown_and_missing_placeholders_are_removed(self) -> None:
        rendered = render("Hello {{unknown}}! {{ eventTitle }} {{ not valid }}", {})

        self.assertEqual(rendered, "Hello !  ")
        self.assertNotIn("{{", rendered)

    def test_empty_template_renders_empty(self) -> None:
        self.assertEqual(render(None, {"name": "Ana"}), "")
        self.assertEqual(render("", {"name": "Ana"}), "")

    def test_dates_are_formatted(self) -> None:
        rendered = render("Class on {{eventDate}}", {"event_date": "2026-01-05"})

        self.assertEqual(rendered, "Class on Mon, Jan 5, 2026")

    @override_settings(STUDIO_NAME="Fever Studio", SITE_BASE_URL="https://fever.example")
    def test_studio_variables_come_from_settings(self) -> None:
        rendered = render("{{studioName}} - {{websiteUrl}}", {})

        self.assertEqual(rendered, "Fever Studio - https://fever.example")


class FormatDateTests(SimpleTestCase):
    def test_plain_date(self) -> None:
        self.assertEqual(format_date(date(2026, 1, 5)), "Mon, Jan 5, 2026")

    @override_settings(TIME_ZONE="America/Los_Angeles")
    def test_aware_datetime_uses_local_date(self) -> None:
        value = datetime(2026, 1, 6, 3, 0, tzinfo=dt_timezone.utc)

        self.assertEqual(format_date(value), "Mon, Jan 5, 2026")

    def test_unparseable_string_is_returned_as_is(self) -> None:
        self.assertEqual(format_date("next week"), "next week")
        self.assertEqual(format_date(None), "")


class TruncateSmsTests(SimpleTestCase):
    def test_short_message_unchanged(self) -> None:
        self.assertEqual(truncate_sms("See you soon"), "See you soon")

    def test_long_message_is_cut_to_limit(self) -> None:
        truncated = truncate_sms("a" * 200)

        self.assertEqual(len(truncated), 160)
        self.assertTrue(truncated.endswith("..."))
