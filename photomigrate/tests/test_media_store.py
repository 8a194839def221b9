"""Tests for MediaItemStore class."""

from concurrent.futures import ThreadPoolExecutor

from photomigrate.models import CANONICAL_QUALITY_VERSION, MediaItem, Unit


class TestListClaimable:
    """Tests for listing claimable items."""

    def test_only_sourced_none_or_pending(self, item_store, add_item):
        """Test only items with a source file in none/pending are listed."""
        a = add_item(status='pending')
        b = add_item(status='none')
        add_item(status='processing')
        add_item(status='done')
        add_item(status='error')
        add_item(status='pending', source_file_id=None)

        items = item_store.list_claimable(10)

        assert [i.id for i in items] == [a.id, b.id]

    def test_limit_and_order(self, item_store, add_item):
        """Test limit is honored and oldest items come first."""
        ids = [add_item().id for _ in range(5)]

        items = item_store.list_claimable(3)

        assert [i.id for i in items] == ids[:3]

    def test_tenant_scope(self, item_store, add_item):
        add_item(tenant_id='agency-1')
        other = add_item(tenant_id='agency-2')

        items = item_store.list_claimable(10, tenant_id='agency-2')

        assert [i.id for i in items] == [other.id]


class TestClaim:
    """Tests for claiming items."""

    def test_claim_moves_to_processing(self, item_store, add_item):
        item = add_item()

        claimed = item_store.claim([item.id])

        assert claimed == [item.id]
        stored = item_store.get(item.id)
        assert stored.migration_status == 'processing'
        assert stored.claimed_at is not None

    def test_claim_empty(self, item_store):
        assert item_store.claim([]) == []

    def test_second_claim_wins_nothing(self, item_store, add_item):
        """Test an item already claimed cannot be claimed again."""
        items = [add_item() for _ in range(3)]
        ids = [i.id for i in items]

        first = item_store.claim(ids)
        second = item_store.claim(ids)

        assert sorted(first) == sorted(ids)
        assert second == []

    def test_overlapping_claims_split_items(self, item_store, add_item):
        """Test partially overlapping claims only win unclaimed rows."""
        ids = [add_item().id for _ in range(4)]

        first = item_store.claim(ids[:3])
        second = item_store.claim(ids[1:])

        assert sorted(first) == sorted(ids[:3])
        assert second == [ids[3]]

    def test_concurrent_claims_are_exclusive(self, item_store, add_item):
        """Test concurrent claims over the same ids never share an item."""
        ids = [add_item().id for _ in range(20)]

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: item_store.claim(ids), range(4)))

        claimed = [item_id for result in results for item_id in result]
        assert sorted(claimed) == sorted(ids)

    def test_claim_skips_done_items(self, item_store, add_item):
        done = add_item(status='done')
        assert item_store.claim([done.id]) == []
        assert item_store.get(done.id).migration_status == 'done'


class TestOutcomes:
    """Tests for recording item outcomes."""

    def test_mark_done(self, item_store, add_item):
        item = add_item(status='processing', migration_error='old failure')

        item_store.mark_done(
            item.id,
            storage_url='https://cdn.example.com/a.webp',
            storage_path='/bucket/a.webp',
            width=1600,
            height=800,
            byte_size=12345,
        )

        stored = item_store.get(item.id)
        assert stored.migration_status == 'done'
        assert stored.quality_version == CANONICAL_QUALITY_VERSION
        assert stored.migrated_at is not None
        assert stored.migration_error is None
        assert stored.storage_url == 'https://cdn.example.com/a.webp'
        assert (stored.width, stored.height, stored.byte_size) == (1600, 800, 12345)

    def test_mark_error_truncates(self, item_store, add_item):
        """Test a 5000 character message is stored as its first 1000 characters."""
        item = add_item(status='processing')
        message = 'x' * 4000 + 'y' * 1000

        item_store.mark_error(item.id, message)

        stored = item_store.get(item.id)
        assert stored.migration_status == 'error'
        assert stored.migration_error == message[:1000]
        assert len(stored.migration_error) == 1000

    def test_mark_error_empty_message(self, item_store, add_item):
        item = add_item(status='processing')
        item_store.mark_error(item.id, '')
        assert item_store.get(item.id).migration_error == 'Unknown error'


class TestMaintenance:
    """Tests for reset, queue and counting."""

    def test_reset_errors(self, item_store, add_item):
        """Test errored items return to pending with their error cleared."""
        failed = [add_item(status='error', migration_error='boom') for _ in range(3)]
        add_item(status='done')

        count = item_store.reset_errors()

        assert count == 3
        for item in failed:
            stored = item_store.get(item.id)
            assert stored.migration_status == 'pending'
            assert stored.migration_error is None

    def test_reset_errors_tenant_scope(self, item_store, add_item):
        add_item(status='error', tenant_id='agency-1')
        other = add_item(status='error', tenant_id='agency-2')

        assert item_store.reset_errors('agency-1') == 1
        assert item_store.get(other.id).migration_status == 'error'

    def test_queue_all(self, item_store, add_item):
        never = add_item(status='none')
        add_item(status='none', source_file_id=None)
        add_item(status='done')

        assert item_store.queue_all() == 1
        assert item_store.get(never.id).migration_status == 'pending'

    def test_count_by_status(self, item_store, add_item):
        """Test live counts treat none and pending alike and skip unsourced items."""
        add_item(status='none')
        add_item(status='pending')
        add_item(status='processing')
        add_item(status='done')
        add_item(status='done')
        add_item(status='error')
        add_item(status='pending', source_file_id=None)

        counts = item_store.count_by_status()

        assert counts.total == 6
        assert counts.pending == 2
        assert counts.processing == 1
        assert counts.done == 2
        assert counts.errors == 1
        assert counts.unmigrated == 4

    def test_count_by_status_empty(self, item_store):
        counts = item_store.count_by_status('nobody')
        assert counts.total == 0
        assert counts.pending == 0

    def test_list_errors(self, item_store, add_item):
        failed = add_item(status='error', migration_error='boom')
        add_item(status='done')

        errors = item_store.list_errors()

        assert [i.id for i in errors] == [failed.id]
        assert errors[0].migration_error == 'boom'


class TestDiscoveryHelpers:
    """Tests for the helpers used by the scanner."""

    def test_insert_if_absent_rejects_same_id(self, item_store, add_item):
        item = add_item()
        assert item_store.insert_if_absent(item) is False

    def test_insert_if_absent_rejects_same_source_file(self, item_store, add_item):
        """Test a second item for the same unit and Drive file is not inserted."""
        item = add_item(source_file_id='drive-abc')
        duplicate = MediaItem(
            id='another-id',
            tenant_id=item.tenant_id,
            parent_id=item.parent_id,
            source_file_id='drive-abc',
        )

        assert item_store.insert_if_absent(duplicate) is False
        assert item_store.get('another-id') is None

    def test_insert_if_absent_allows_unsourced_siblings(self, item_store, add_item):
        add_item(source_file_id=None)
        sibling = MediaItem(id='sibling', tenant_id='agency-1', parent_id='unit-1')

        assert item_store.insert_if_absent(sibling) is True

    def test_has_sourced_items(self, item_store, add_item):
        add_item(parent_id='unit-a', source_file_id=None)
        add_item(parent_id='unit-b')

        assert item_store.has_sourced_items('unit-a') is False
        assert item_store.has_sourced_items('unit-b') is True
        assert item_store.has_sourced_items('unit-c') is False

    def test_find_unit(self, item_store):
        item_store.add_unit(Unit(id='u1', tenant_id='agency-1', source_row_id='ROW-7'))

        unit = item_store.find_unit('ROW-7')

        assert unit.id == 'u1'
        assert unit.tenant_id == 'agency-1'
        assert item_store.find_unit('ROW-8') is None
