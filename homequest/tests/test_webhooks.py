"""Tests for outbound family event webhooks."""

from unittest.mock import patch, MagicMock

import pytest
import requests

from homequest.services.task_service import TaskService
from homequest.utils.webhooks import build_payload, fire_webhook


class TestPayload:

    def test_task_event(self, db_session, submitted_task):
        payload = build_payload('task_submitted', submitted_task)

        assert payload['event'] == 'task_submitted'
        assert payload['family_id'] == 'family-1'
        assert payload['data']['name'] == 'Make the bed'
        assert payload['data']['points'] == 20
        assert 'timestamp' in payload

    def test_level_up_event(self, db_session, child_user):
        payload = build_payload('level_up', {'user_id': child_user.id, 'new_level': 3})

        assert payload['family_id'] == 'family-1'
        assert payload['data'] == {'child_id': child_user.id, 'new_level': 3}

    def test_unknown_event(self, db_session, submitted_task):
        with pytest.raises(ValueError):
            build_payload('chore_exploded', submitted_task)


class TestDelivery:

    def test_skipped_without_url(self, app, db_session, submitted_task):
        with patch('homequest.utils.webhooks.requests.post') as mock_post:
            assert fire_webhook('task_submitted', submitted_task) is False
        mock_post.assert_not_called()

    @patch('homequest.utils.webhooks.requests.post')
    def test_delivered(self, mock_post, app, db_session, submitted_task):
        mock_post.return_value = MagicMock(status_code=200)
        app.config['WEBHOOK_URL'] = 'http://dashboard.local/hook'

        assert fire_webhook('task_submitted', submitted_task) is True

        args, kwargs = mock_post.call_args
        assert args[0] == 'http://dashboard.local/hook'
        assert kwargs['timeout'] == 5
        assert kwargs['json']['event'] == 'task_submitted'

    @patch('homequest.utils.webhooks.requests.post')
    def test_failure_does_not_break_approval(self, mock_post, app, db_session, parent_user, submitted_task):
        mock_post.side_effect = requests.exceptions.ConnectionError('dashboard offline')
        app.config['WEBHOOK_URL'] = 'http://dashboard.local/hook'

        task, _ = TaskService.approve(submitted_task.id, parent_user)

        assert task.status == 'approved'
        assert mock_post.called
