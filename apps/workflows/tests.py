from django.test import SimpleTestCase, TestCase, override_settings

from apps.authentication.models import User
from apps.workflows.services import ApproverResolver
from apps.workflows.states import (
    ACTUAL,
    EDITABLE_STATES,
    KPI,
    Event,
    InvalidTransition,
    WorkflowStatus as S,
    can_transition,
    level_status,
    transition,
)
from tests.factories import UserFactory


class StateMachineTests(SimpleTestCase):

    def test_happy_path(self):
        status = transition(KPI, S.DRAFT, Event.SUBMIT)
        self.assertEqual(status, S.WAITING_LINE_MGR)
        status = transition(KPI, status, Event.ESCALATE)
        self.assertEqual(status, S.WAITING_MANAGER)
        self.assertEqual(transition(KPI, status, Event.FINALIZE), S.APPROVED)

    def test_level_one_may_finalize(self):
        self.assertEqual(transition(ACTUAL, S.WAITING_LINE_MGR, Event.FINALIZE), S.APPROVED)

    def test_rejected_may_be_resubmitted(self):
        for entity_type in (KPI, ACTUAL):
            with self.subTest(entity_type=entity_type):
                self.assertEqual(transition(entity_type, S.REJECTED, Event.SUBMIT), S.WAITING_LINE_MGR)

    def test_change_request_only_applies_to_kpis(self):
        self.assertEqual(transition(KPI, S.LOCKED_GOALS, Event.REQUEST_CHANGE), S.CHANGE_REQUESTED)
        self.assertEqual(transition(KPI, S.CHANGE_REQUESTED, Event.SUBMIT), S.WAITING_LINE_MGR)
        self.assertFalse(can_transition(ACTUAL, S.APPROVED, Event.REQUEST_CHANGE))

    def test_resolved_change_returns_to_approved(self):
        self.assertEqual(transition(KPI, S.CHANGE_REQUESTED, Event.RESOLVE_CHANGE), S.APPROVED)
        self.assertFalse(can_transition(KPI, S.WAITING_LINE_MGR, Event.RESOLVE_CHANGE))
        self.assertFalse(can_transition(ACTUAL, S.CHANGE_REQUESTED, Event.RESOLVE_CHANGE))

    def test_goals_lock_only_after_approval(self):
        self.assertEqual(transition(KPI, S.APPROVED, Event.LOCK_GOALS), S.LOCKED_GOALS)
        self.assertFalse(can_transition(KPI, S.DRAFT, Event.LOCK_GOALS))
        self.assertFalse(can_transition(ACTUAL, S.APPROVED, Event.LOCK_GOALS))

    def test_approved_is_terminal_for_decisions(self):
        for event in (Event.SUBMIT, Event.ESCALATE, Event.FINALIZE, Event.REJECT, Event.RETURN_TO_STAFF):
            with self.subTest(event=event):
                self.assertFalse(can_transition(ACTUAL, S.APPROVED, event))

    def test_invalid_transition_carries_context(self):
        with self.assertRaises(InvalidTransition) as ctx:
            transition(KPI, S.APPROVED, Event.SUBMIT)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(str(ctx.exception.message), 'Cannot submit a kpi in status APPROVED')
        self.assertEqual(ctx.exception.details['event'], 'SUBMIT')

    def test_editable_states(self):
        self.assertEqual(EDITABLE_STATES, {'DRAFT', 'REJECTED', 'CHANGE_REQUESTED'})

    def test_level_status(self):
        self.assertEqual(level_status(1), S.WAITING_LINE_MGR)
        self.assertEqual(level_status(2), S.WAITING_MANAGER)


class ApproverResolverTests(TestCase):

    def test_direct_manager_first(self):
        manager = UserFactory(role=User.Role.LINE_MANAGER, department='Finance')
        UserFactory(role=User.Role.LINE_MANAGER)
        owner = UserFactory(manager=manager)
        self.assertEqual(ApproverResolver.level_one(owner), manager)

    def test_inactive_manager_falls_back_to_department_line_manager(self):
        inactive = UserFactory(role=User.Role.LINE_MANAGER, status=User.Status.INACTIVE)
        UserFactory(role=User.Role.LINE_MANAGER, department='Finance')
        same_department = UserFactory(role=User.Role.LINE_MANAGER, department='Sales')
        owner = UserFactory(manager=inactive, department='sales')
        self.assertEqual(ApproverResolver.level_one(owner), same_department)

    def test_admin_is_last_resort_at_level_one(self):
        admin = UserFactory(role=User.Role.ADMIN)
        owner = UserFactory()
        self.assertEqual(ApproverResolver.level_one(owner), admin)

    def test_owner_never_approves_own_work(self):
        owner = UserFactory(role=User.Role.LINE_MANAGER)
        self.assertIsNone(ApproverResolver.level_one(owner))

    def test_level_two_prefers_hod(self):
        hod = UserFactory(role=User.Role.MANAGER, department='Finance')
        UserFactory(role=User.Role.MANAGER)
        owner = UserFactory(hod=hod)
        self.assertEqual(ApproverResolver.level_two(owner), hod)

    def test_level_two_department_manager(self):
        manager = UserFactory(role=User.Role.MANAGER)
        owner = UserFactory()
        self.assertEqual(ApproverResolver.resolve(level=2, owner=owner), manager)

    @override_settings(KPI_GENERAL_HOD_EMAIL='general.hod@intersnack.com.vn')
    def test_level_two_general_hod(self):
        general = UserFactory(email='general.hod@intersnack.com.vn', role=User.Role.MANAGER, department='Board')
        owner = UserFactory()
        self.assertEqual(ApproverResolver.level_two(owner), general)

    @override_settings(KPI_GENERAL_HOD_EMAIL='')
    def test_no_level_two_approver(self):
        UserFactory(role=User.Role.MANAGER, department='Finance')
        self.assertIsNone(ApproverResolver.level_two(UserFactory()))
