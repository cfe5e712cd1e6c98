from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from accounts.directory import current_membership, list_ids_for, membership_tier_for
from accounts.models import User
from studio.models import MailingList, Membership


class UserRoleTests(TestCase):
    def test_role_helpers(self) -> None:
        admin = User.objects.create_user(username="admin", password="pass", role=User.Role.ADMIN)
        instructor = User.objects.create_user(username="coach", password="pass", role=User.Role.INSTRUCTOR)
        member = User.objects.create_user(username="member", password="pass")

        self.assertTrue(admin.is_admin)
        self.assertFalse(admin.is_member)

        self.assertTrue(instructor.is_instructor)
        self.assertFalse(instructor.is_admin)

        self.assertTrue(member.is_member)
        self.assertTrue(member.sms_opt_in)
        self.assertEqual(member.acquisition_source, User.AcquisitionSource.DIRECT)

    def test_display_name(self) -> None:
        named = User.objects.create_user(username="ana", first_name="Ana", last_name="Diaz")
        bare = User.objects.create_user(username="ben")

        self.assertEqual(named.display_name, "Ana Diaz")
        self.assertEqual(bare.display_name, "ben")


class DirectoryTests(TestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(username="ana", email="ana@example.com")

    def test_current_membership_ignores_lapsed_ones(self) -> None:
        now = timezone.now()
        Membership.objects.create(
            user=self.user,
            tier=Membership.Tier.EPIDEMIC,
            status=Membership.Status.CANCELLED,
            started_at=now,
        )
        active = Membership.objects.create(
            user=self.user,
            tier=Membership.Tier.OUTBREAK,
            status=Membership.Status.ACTIVE,
            started_at=now - timedelta(days=30),
        )

        self.assertEqual(current_membership(self.user), active)
        self.assertEqual(membership_tier_for(self.user), "outbreak")

    def test_no_membership(self) -> None:
        self.assertIsNone(membership_tier_for(self.user))

    def test_list_ids(self) -> None:
        vip = MailingList.objects.create(name="VIP")
        MailingList.objects.create(name="Newsletter")
        vip.members.add(self.user)

        self.assertEqual(list_ids_for(self.user), [vip.pk])
