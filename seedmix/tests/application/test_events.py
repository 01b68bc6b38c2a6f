from seedmix.application.events import EventBus, TOKEN_ACQUIRED, TOP_TRACKS_UPDATED


def test_publish_runs_handlers_in_registration_order():
    bus = EventBus()
    seen = []

    def first(token):
        seen.append(('first', token))

    def second(token):
        seen.append(('second', token))

    bus.subscribe(TOKEN_ACQUIRED, first)
    bus.subscribe(TOKEN_ACQUIRED, second)
    bus.publish(TOKEN_ACQUIRED, token='AT')

    assert seen == [('first', 'AT'), ('second', 'AT')]


def test_publish_without_subscribers_is_noop():
    bus = EventBus()
    bus.publish(TOP_TRACKS_UPDATED, tracks=())


def test_events_are_isolated():
    bus = EventBus()
    seen = []
    bus.subscribe(TOP_TRACKS_UPDATED, lambda tracks: seen.append(tracks))

    bus.publish(TOKEN_ACQUIRED, token='AT')

    assert seen == []


def test_subscriptions_lists_event_and_handler_names():
    bus = EventBus()

    def on_token(token):
        pass

    bus.subscribe(TOKEN_ACQUIRED, on_token)

    assert bus.subscriptions() == [('token_acquired', 'on_token')]
