from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.authentication.models import User
from apps.organization.models import OrgUnit
from tests.factories import OrgUnitFactory, UserFactory


class OrgUnitApiTests(APITestCase):

    def setUp(self):
        self.admin = UserFactory(role=User.Role.ADMIN)
        self.company = OrgUnitFactory(name='Intersnack Vietnam', type=OrgUnit.UnitType.COMPANY)
        self.division = OrgUnitFactory(name='Commercial', type=OrgUnit.UnitType.DIVISION, parent=self.company)
        self.team = OrgUnitFactory(name='Key Accounts', type=OrgUnit.UnitType.TEAM, parent=self.division)

    def test_any_user_can_list_and_filter(self):
        self.client.force_authenticate(UserFactory())

        response = self.client.get(reverse('org-unit-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['pagination']['count'], 3)

        response = self.client.get(reverse('org-unit-list'), {'parent': str(self.company.pk)})
        self.assertEqual([item['id'] for item in response.json()['data']], [str(self.division.pk)])

    def test_list_requires_authentication(self):
        response = self.client.get(reverse('org-unit-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_staff_cannot_write(self):
        self.client.force_authenticate(UserFactory(role=User.Role.MANAGER))

        response = self.client.post(
            reverse('org-unit-list'),
            {'name': 'Finance', 'type': OrgUnit.UnitType.DEPARTMENT},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.patch(
            reverse('org-unit-detail', args=[self.team.pk]),
            {'name': 'Renamed'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(OrgUnit.objects.filter(name__in=['Finance', 'Renamed']).exists())

    def test_admin_creates_unit_under_parent(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            reverse('org-unit-list'),
            {'name': ' Finance ', 'type': OrgUnit.UnitType.DEPARTMENT, 'parent': str(self.company.pk)},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        unit = OrgUnit.objects.get(name='Finance')
        self.assertEqual(unit.parent, self.company)
        self.assertEqual(response.json()['data']['parent_name'], 'Intersnack Vietnam')

    def test_name_and_type_are_required(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(reverse('org-unit-list'), {'name': '   '}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.json()['details'])
        self.assertIn('type', response.json()['details'])

    def test_unit_cannot_become_its_own_ancestor(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse('org-unit-detail', args=[self.company.pk]),
            {'parent': str(self.team.pk)},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'parent: An org unit cannot be its own ancestor.')
        self.company.refresh_from_db()
        self.assertIsNone(self.company.parent)

    def test_unit_cannot_be_its_own_parent(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse('org-unit-detail', args=[self.team.pk]),
            {'parent': str(self.team.pk)},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_moving_unit_elsewhere_is_allowed(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse('org-unit-detail', args=[self.team.pk]),
            {'parent': str(self.company.pk)},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.team.refresh_from_db()
        self.assertEqual(self.team.parent, self.company)

    def test_delete_requires_no_children(self):
        self.client.force_authenticate(self.admin)

        response = self.client.delete(reverse('org-unit-detail', args=[self.division.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], 'Remove or move child units first')

        response = self.client.delete(reverse('org-unit-detail', args=[self.team.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(OrgUnit.objects.filter(pk=self.team.pk).exists())
        self.assertTrue(OrgUnit.all_objects.get(pk=self.team.pk).is_deleted)
