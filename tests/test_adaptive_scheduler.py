"""Tests for weakest-first adaptive session scheduling."""

import random
from datetime import timedelta
from uuid import uuid4

import pytest

from mastery_engine.core.exceptions import NotFoundError
from mastery_engine.learning_engine.adaptive.scheduler import AdaptiveSessionScheduler
from mastery_engine.learning_engine.bkt.store import AttemptLog, MasteryStore
from mastery_engine.learning_engine.catalog import SqlCourseDirectory, SqlQuestionBank
from tests.helpers.seed import add_kc, add_question, seed_course, set_mastery


def make_scheduler(db, clock, seed: int = 7, **kwargs) -> AdaptiveSessionScheduler:
    return AdaptiveSessionScheduler(
        MasteryStore(db, clock),
        AttemptLog(db, clock),
        SqlQuestionBank(db),
        SqlCourseDirectory(db),
        rng=random.Random(seed),
        **kwargs,
    )


def log_attempt(db, clock, user_id, course, kc_id, question_id):
    AttemptLog(db, clock).append(
        user_id=user_id,
        course_id=course.course_id,
        question_id=question_id,
        kc_id=kc_id,
        selected_option_index=0,
        is_correct=False,
        p_mastery_before=0.3,
        p_mastery_after=0.15,
    )


class TestSchedulePlan:
    def test_never_exceeds_max_questions(self, db, clock):
        big = seed_course(db, kc_count=12, questions_per_kc=1)
        db.commit()

        plan = make_scheduler(db, clock).plan(uuid4(), big.course_id)

        assert len(plan.question_ids) == 10
        assert len(set(plan.kc_ids)) == len(plan.kc_ids)
        assert plan.kcs_in_scope == 12
        # No records: all tie, so creation order decides
        assert plan.kc_ids == big.kc_ids[:10]

    def test_one_question_per_kc(self, db, clock, course):
        plan = make_scheduler(db, clock).plan(uuid4(), course.course_id)

        assert len(plan.question_ids) == 3
        assert sorted(map(str, plan.kc_ids)) == sorted(map(str, course.kc_ids))
        for question_id, kc_id in zip(plan.question_ids, plan.kc_ids):
            assert course.kc_by_question[question_id] == kc_id

    def test_weakest_first(self, db, clock, course):
        user_id = uuid4()
        kc_a, kc_b, kc_c = course.kc_ids
        set_mastery(db, user_id, course.course_id, kc_a, p_mastery=0.8)
        set_mastery(db, user_id, course.course_id, kc_b, p_mastery=0.2)
        db.commit()

        plan = make_scheduler(db, clock).plan(user_id, course.course_id)

        # kc_c has no record and ranks at the default prior of 0.3
        assert plan.kc_ids == [kc_b, kc_c, kc_a]

    def test_ties_prefer_fewer_attempts_then_creation_order(self, db, clock, course):
        user_id = uuid4()
        kc_a, kc_b, kc_c = course.kc_ids
        set_mastery(db, user_id, course.course_id, kc_a, p_mastery=0.3, total_attempts=5)
        set_mastery(db, user_id, course.course_id, kc_c, p_mastery=0.3, total_attempts=0)
        db.commit()

        plan = make_scheduler(db, clock).plan(user_id, course.course_id)

        assert plan.kc_ids == [kc_b, kc_c, kc_a]

    def test_all_mastered(self, db, clock, course):
        user_id = uuid4()
        for kc_id in course.kc_ids:
            set_mastery(db, user_id, course.course_id, kc_id, p_mastery=0.9)
        db.commit()

        plan = make_scheduler(db, clock).plan(user_id, course.course_id)

        assert plan.all_mastered
        assert plan.question_ids == []

    def test_mastered_kcs_fill_remaining_slots(self, db, clock, course):
        user_id = uuid4()
        kc_a, kc_b, kc_c = course.kc_ids
        set_mastery(db, user_id, course.course_id, kc_a, p_mastery=0.95)
        db.commit()

        plan = make_scheduler(db, clock).plan(user_id, course.course_id)

        assert not plan.all_mastered
        assert plan.kc_ids == [kc_b, kc_c, kc_a]

    def test_kc_without_questions_is_skipped(self, db, clock, course):
        empty_kc = add_kc(db, course.course_id, name="No questions yet")
        db.commit()

        plan = make_scheduler(db, clock).plan(uuid4(), course.course_id)

        assert empty_kc.id not in plan.kc_ids
        assert len(plan.question_ids) == 3
        assert plan.kcs_in_scope == 4

    def test_empty_scope_is_not_all_mastered(self, db, clock, course):
        plan = make_scheduler(db, clock).plan(uuid4(), course.course_id, topic_id=uuid4())

        assert plan.question_ids == []
        assert not plan.all_mastered
        assert plan.kcs_in_scope == 0

    def test_topic_scope(self, db, clock, course):
        topic_id = uuid4()
        topical = add_kc(db, course.course_id, name="Topical", topic_id=topic_id)
        add_question(db, topical.id)
        db.commit()

        plan = make_scheduler(db, clock).plan(uuid4(), course.course_id, topic_id=topic_id)

        assert plan.kc_ids == [topical.id]

    def test_unknown_course(self, db, clock):
        with pytest.raises(NotFoundError):
            make_scheduler(db, clock).plan(uuid4(), uuid4())

    def test_zero_max_questions_schedules_nothing(self, db, clock, course):
        plan = make_scheduler(db, clock, max_questions=0).plan(uuid4(), course.course_id)

        assert plan.question_ids == []
        assert not plan.all_mastered
        assert plan.kcs_in_scope == 3


class TestPickQuestion:
    def test_every_eligible_question_can_be_picked(self, db, clock):
        pool = seed_course(db, kc_count=1, questions_per_kc=3)
        db.commit()
        kc_id = pool.kc_ids[0]

        picked = {
            make_scheduler(db, clock, seed=seed).pick_question(kc_id, set()) for seed in range(60)
        }

        assert picked == set(pool.questions[kc_id])

    def test_same_seed_same_pick(self, db, clock, course):
        kc_id = course.kc_ids[0]
        first = make_scheduler(db, clock, seed=11).pick_question(kc_id, set())
        again = make_scheduler(db, clock, seed=11).pick_question(kc_id, set())

        assert first == again


class TestRecentlySeen:
    def test_avoids_recent_questions(self, db, clock, course):
        user_id = uuid4()
        kc_a = course.kc_ids[0]
        seen, fresh = course.questions[kc_a]
        log_attempt(db, clock, user_id, course, kc_a, seen)
        db.commit()

        for seed in range(5):
            plan = make_scheduler(db, clock, seed=seed).plan(user_id, course.course_id)
            assert fresh in plan.question_ids
            assert seen not in plan.question_ids

    def test_reuses_when_everything_was_seen(self, db, clock, course):
        user_id = uuid4()
        kc_a = course.kc_ids[0]
        for question_id in course.questions[kc_a]:
            log_attempt(db, clock, user_id, course, kc_a, question_id)
        db.commit()

        plan = make_scheduler(db, clock).plan(user_id, course.course_id)

        assert kc_a in plan.kc_ids
        picked = plan.question_ids[plan.kc_ids.index(kc_a)]
        assert picked in course.questions[kc_a]

    def test_window_expires(self, db, clock, course):
        user_id = uuid4()
        kc_a = course.kc_ids[0]
        seen, _ = course.questions[kc_a]
        log_attempt(db, clock, user_id, course, kc_a, seen)
        db.commit()

        attempts = AttemptLog(db, clock)
        assert attempts.recently_seen(user_id, make_scheduler(db, clock).recent_window) == {seen}

        clock.advance(hours=25)
        assert attempts.recently_seen(user_id, make_scheduler(db, clock).recent_window) == set()

    def test_other_users_attempts_do_not_count(self, db, clock, course):
        kc_a = course.kc_ids[0]
        log_attempt(db, clock, uuid4(), course, kc_a, course.questions[kc_a][0])
        db.commit()

        window = make_scheduler(db, clock).recent_window
        assert AttemptLog(db, clock).recently_seen(uuid4(), window) == set()

    def test_zero_window_only_counts_this_instant(self, db, clock, course):
        user_id = uuid4()
        kc_a = course.kc_ids[0]
        seen, _ = course.questions[kc_a]
        log_attempt(db, clock, user_id, course, kc_a, seen)
        db.commit()

        scheduler = make_scheduler(db, clock, recent_window=timedelta(0))
        assert scheduler.recent_window == timedelta(0)

        clock.advance(seconds=1)
        assert AttemptLog(db, clock).recently_seen(user_id, scheduler.recent_window) == set()
