"""
Unit tests for AI summary generation.

Tests prompt building, the chat-completions call (httpx mocked), error
mapping, and the background task entry points.
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import httpx
import pytest

from backend.src.config.settings import AppSettings
from backend.src.models import Event
from backend.src.services.exceptions import SummaryError
from backend.src.services.recurring_series_service import RecurringSeriesService
from backend.src.services.summary_service import (
    InlineSummaryDispatcher,
    SummaryService,
    backfill_series_summaries,
    generate_event_summary,
)


def _settings(**overrides):
    values = {
        'VHUB_AI_SUMMARY_API_KEY': 'test-api-key',
        'VHUB_AI_SUMMARY_URL': 'https://ai.example.com/v1/chat/completions',
        'VHUB_AI_SUMMARY_MODEL': 'test-model',
        'VHUB_SUMMARY_BACKFILL_DELAY': 0.5,
    }
    values.update(overrides)
    return AppSettings(**values)


def _completion(content):
    return httpx.Response(200, json={'choices': [{'message': {'content': content}}]})


@pytest.fixture
def mock_client():
    """httpx client mock returning a fixed summary."""
    client = Mock(spec=httpx.Client)
    client.post.return_value = _completion('  A lovely morning by the sea.  ')
    return client


@pytest.fixture
def summary_service(mock_client):
    return SummaryService(settings=_settings(), client=mock_client)


class TestBuildPrompt:
    """Tests for prompt construction."""

    def test_prompt_contains_event_fields(self, sample_event):
        event = sample_event(title='Reef Survey', start=datetime(2024, 3, 4, 8, 30))

        prompt = SummaryService.build_prompt(event)

        assert '150-word summary' in prompt
        assert 'Event: Reef Survey' in prompt
        assert 'Location: North Beach' in prompt
        assert 'Type: cleanup' in prompt
        assert 'Date: 2024-03-04T08:30:00' in prompt
        assert 'Organizer: Green Shores' in prompt
        assert 'Recurring Instance' not in prompt

    def test_prompt_mentions_instance_number(self, sample_event):
        event = sample_event()
        event.recurring_instance_number = 3

        assert 'Recurring Instance: #3' in SummaryService.build_prompt(event)


class TestGenerate:
    """Tests for the endpoint call."""

    def test_request_shape(self, summary_service, mock_client):
        result = summary_service.generate('Summarize this')

        assert result == 'A lovely morning by the sea.'
        args, kwargs = mock_client.post.call_args
        assert args[0] == 'https://ai.example.com/v1/chat/completions'
        assert kwargs['json'] == {
            'model': 'test-model',
            'messages': [{'role': 'user', 'content': 'Summarize this'}],
        }
        assert kwargs['headers']['Authorization'] == 'Bearer test-api-key'

    def test_injected_client_not_closed(self, summary_service, mock_client):
        summary_service.generate('x')
        mock_client.close.assert_not_called()

    def test_not_configured(self, mock_client):
        service = SummaryService(settings=_settings(VHUB_AI_SUMMARY_API_KEY=''), client=mock_client)

        assert service.enabled is False
        with pytest.raises(SummaryError):
            service.generate('x')
        mock_client.post.assert_not_called()

    def test_http_error_status(self, summary_service, mock_client):
        mock_client.post.return_value = httpx.Response(429, json={'error': 'rate limited'})

        with pytest.raises(SummaryError) as exc_info:
            summary_service.generate('x')
        assert exc_info.value.status_code == 429

    def test_timeout(self, summary_service, mock_client):
        mock_client.post.side_effect = httpx.ReadTimeout('timed out')

        with pytest.raises(SummaryError, match='timed out'):
            summary_service.generate('x')

    def test_connection_error(self, summary_service, mock_client):
        mock_client.post.side_effect = httpx.ConnectError('refused')

        with pytest.raises(SummaryError, match='failed'):
            summary_service.generate('x')

    @pytest.mark.parametrize('payload', [{}, {'choices': []}, {'choices': [{'message': {}}]}])
    def test_unexpected_payload(self, summary_service, mock_client, payload):
        mock_client.post.return_value = httpx.Response(200, json=payload)

        with pytest.raises(SummaryError):
            summary_service.generate('x')

    def test_empty_content(self, summary_service, mock_client):
        mock_client.post.return_value = _completion('   ')

        with pytest.raises(SummaryError, match='empty'):
            summary_service.generate('x')


class TestSummarizeEvent:
    """Tests for storing summaries."""

    def test_summary_stored(self, summary_service, sample_event, test_db_session):
        event = sample_event()

        result = summary_service.summarize_event(test_db_session, event)

        test_db_session.refresh(event)
        assert result == 'A lovely morning by the sea.'
        assert event.summary == 'A lovely morning by the sea.'

    def test_failure_swallowed(self, summary_service, mock_client, sample_event, test_db_session):
        mock_client.post.return_value = httpx.Response(500)
        event = sample_event()

        assert summary_service.summarize_event(test_db_session, event) is None
        test_db_session.refresh(event)
        assert event.summary is None


class TestBackgroundTasks:
    """Tests for the background task entry points."""

    def test_generate_event_summary(self, summary_service, sample_event, test_db_session, test_session_factory):
        event = sample_event()

        generate_event_summary(event.id, session_factory=test_session_factory, service=summary_service)

        test_db_session.expire_all()
        assert test_db_session.get(Event, event.id).summary == 'A lovely morning by the sea.'

    def test_generate_event_summary_disabled(self, mock_client, sample_event, test_session_factory):
        service = SummaryService(settings=_settings(VHUB_AI_SUMMARY_API_KEY=''), client=mock_client)

        generate_event_summary(sample_event().id, session_factory=test_session_factory, service=service)

        mock_client.post.assert_not_called()

    def test_generate_event_summary_missing_event(self, summary_service, mock_client, test_session_factory):
        generate_event_summary(424242, session_factory=test_session_factory, service=summary_service)
        mock_client.post.assert_not_called()

    def test_backfill_only_missing(
        self, summary_service, mock_client, sample_event, test_db_session, test_session_factory
    ):
        first = sample_event(start=datetime(2024, 1, 1, 9), recurring_type='weekly', recurring_value='Monday')
        series_service = RecurringSeriesService(test_db_session)
        series = series_service.create_series_for_event(first)
        test_db_session.commit()
        second = series_service.materialize_next_instance(series, first)
        third = series_service.materialize_next_instance(series, second)
        second.summary = 'Already written'
        test_db_session.commit()

        sleep = Mock()
        generated = backfill_series_summaries(
            series.id, session_factory=test_session_factory, service=summary_service, sleep=sleep
        )

        assert generated == 2
        assert mock_client.post.call_count == 2
        sleep.assert_called_once_with(0.5)

        test_db_session.expire_all()
        assert test_db_session.get(Event, first.id).summary == 'A lovely morning by the sea.'
        assert test_db_session.get(Event, second.id).summary == 'Already written'
        assert test_db_session.get(Event, third.id).summary == 'A lovely morning by the sea.'

    def test_backfill_disabled(self, mock_client, test_session_factory):
        service = SummaryService(settings=_settings(VHUB_AI_SUMMARY_API_KEY=''), client=mock_client)

        assert backfill_series_summaries(1, session_factory=test_session_factory, service=service) == 0

    def test_inline_dispatcher_runs_disabled_task(self, sample_event, test_session_factory):
        """With no endpoint configured the inline dispatcher is a logged no-op."""
        event = sample_event(start=datetime.utcnow() + timedelta(days=1))

        InlineSummaryDispatcher(test_session_factory).dispatch(event.id)
