"""
Catalog store: categories, courses, sections and lectures
"""
import json

import pytest

from conftest import auth_headers, make_category, make_course, make_user

pytestmark = pytest.mark.anyio("asyncio")

API = "/api/v1/course"


def course_form(category_id, **overrides):
    form = {
        "course_name": "Data Structures",
        "course_description": "Trees and graphs",
        "what_you_will_learn": "Algorithms",
        "price": "999",
        "tag": json.dumps(["dsa", "python"]),
        "category_id": category_id,
        "instructions": json.dumps(["Laptop required"]),
    }
    form.update(overrides)
    return form


async def test_create_course_links_instructor_and_category(client, db, settings, uploader):
    instructor = await make_user(db, "Instructor")
    category = await make_category(db)

    resp = await client.post(
        f"{API}/createCourse",
        data=course_form(category["category_id"]),
        files={"thumbnail_image": ("cover.png", b"png-bytes", "image/png")},
        headers=auth_headers(instructor, settings),
    )
    assert resp.status_code == 200
    course = resp.json()["data"]
    assert course["status"] == "Draft"
    assert course["tag"] == ["dsa", "python"]
    assert course["price"] == 999.0
    assert course["thumbnail"] == "https://media.test/cover.png"

    stored_instructor = await db.users.find_one({"user_id": instructor["user_id"]})
    stored_category = await db.categories.find_one({"category_id": category["category_id"]})
    assert course["course_id"] in stored_instructor["courses"]
    assert course["course_id"] in stored_category["courses"]


async def test_create_course_requires_all_fields(client, db, settings):
    instructor = await make_user(db, "Instructor")
    category = await make_category(db)
    resp = await client.post(
        f"{API}/createCourse",
        data=course_form(category["category_id"], course_name=""),
        headers=auth_headers(instructor, settings),
    )
    assert resp.status_code == 400


async def test_create_course_unknown_category(client, db, settings):
    instructor = await make_user(db, "Instructor")
    resp = await client.post(
        f"{API}/createCourse",
        data=course_form("CAT_MISSING"),
        headers=auth_headers(instructor, settings),
    )
    assert resp.status_code == 404


async def test_students_cannot_create_courses(client, db, settings):
    student = await make_user(db)
    category = await make_category(db)
    resp = await client.post(
        f"{API}/createCourse",
        data=course_form(category["category_id"]),
        headers=auth_headers(student, settings),
    )
    assert resp.status_code == 403


async def test_edit_course_owner_only(client, db, settings):
    owner = await make_user(db, "Instructor")
    other = await make_user(db, "Instructor")
    course = await make_course(db, owner, await make_category(db))

    denied = await client.post(
        f"{API}/editCourse",
        data={"course_id": course["course_id"], "course_name": "Hijacked"},
        headers=auth_headers(other, settings),
    )
    assert denied.status_code == 403

    resp = await client.post(
        f"{API}/editCourse",
        data={"course_id": course["course_id"], "course_name": "Python Advanced", "tag": '["adv"]'},
        headers=auth_headers(owner, settings),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["course_name"] == "Python Advanced"
    assert data["tag"] == ["adv"]
    # Untouched fields survive a partial update
    assert data["course_description"] == "Learn Python"


async def test_edit_course_moves_category(client, db, settings):
    owner = await make_user(db, "Instructor")
    old = await make_category(db)
    new = await make_category(db)
    course = await make_course(db, owner, old)

    resp = await client.post(
        f"{API}/editCourse",
        data={"course_id": course["course_id"], "category_id": new["category_id"]},
        headers=auth_headers(owner, settings),
    )
    assert resp.status_code == 200
    assert course["course_id"] not in (await db.categories.find_one({"category_id": old["category_id"]}))["courses"]
    assert course["course_id"] in (await db.categories.find_one({"category_id": new["category_id"]}))["courses"]


async def test_course_details_include_content_and_duration(client, db):
    instructor = await make_user(db, "Instructor")
    course = await make_course(db, instructor, await make_category(db), lectures=(2, 1),
                               durations=["3000", "900", "bad"])

    resp = await client.post(f"{API}/getCourseDetails", json={"course_id": course["course_id"]})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total_duration"] == "1h 5m"
    details = data["course_details"]
    assert [len(s["subsections"]) for s in details["course_content"]] == [2, 1]
    assert details["instructor"]["user_id"] == instructor["user_id"]
    assert "password" not in details["instructor"]


async def test_course_details_unknown_course(client):
    resp = await client.post(f"{API}/getCourseDetails", json={"course_id": "COURSE_NOPE"})
    assert resp.status_code == 404
    assert resp.json()["success"] is False


async def test_get_all_courses_lists_published_only(client, db):
    instructor = await make_user(db, "Instructor")
    category = await make_category(db)
    published = await make_course(db, instructor, category, name="Live")
    await make_course(db, instructor, category, name="Hidden", status="Draft")

    resp = await client.get(f"{API}/getAllCourses")
    names = [c["course_name"] for c in resp.json()["data"]]
    assert names == ["Live"]
    assert resp.json()["data"][0]["course_id"] == published["course_id"]


async def test_instructor_courses(client, db, settings):
    instructor = await make_user(db, "Instructor")
    category = await make_category(db)
    await make_course(db, instructor, category, status="Draft")
    await make_course(db, await make_user(db, "Instructor"), category)

    resp = await client.get(f"{API}/getInstructorCourses", headers=auth_headers(instructor, settings))
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 1


async def test_section_lifecycle(client, db, settings):
    instructor = await make_user(db, "Instructor")
    course = await make_course(db, instructor, await make_category(db), lectures=())
    headers = auth_headers(instructor, settings)

    created = await client.post(f"{API}/addSection",
                                json={"course_id": course["course_id"], "section_name": "Intro"},
                                headers=headers)
    assert created.status_code == 200
    section = created.json()["data"]["course_content"][0]
    assert section["section_name"] == "Intro"

    renamed = await client.post(f"{API}/updateSection",
                                json={"section_id": section["section_id"], "section_name": "Basics"},
                                headers=headers)
    assert renamed.json()["data"]["course_content"][0]["section_name"] == "Basics"

    deleted = await client.post(f"{API}/deleteSection",
                                json={"section_id": section["section_id"], "course_id": course["course_id"]},
                                headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["data"]["course_content"] == []
    assert await db.sections.find_one({"section_id": section["section_id"]}) is None


async def test_section_changes_require_ownership(client, db, settings):
    owner = await make_user(db, "Instructor")
    other = await make_user(db, "Instructor")
    course = await make_course(db, owner, await make_category(db))

    resp = await client.post(f"{API}/updateSection",
                             json={"section_id": course["course_content"][0], "section_name": "Mine now"},
                             headers=auth_headers(other, settings))
    assert resp.status_code == 403


async def test_delete_section_rejects_section_from_another_course(client, db, settings):
    owner = await make_user(db, "Instructor")
    other = await make_user(db, "Instructor")
    category = await make_category(db)
    victim = await make_course(db, owner, category, lectures=(2,))
    own = await make_course(db, other, category, lectures=(1,))
    victim_section = victim["course_content"][0]

    resp = await client.post(f"{API}/deleteSection",
                             json={"section_id": victim_section, "course_id": own["course_id"]},
                             headers=auth_headers(other, settings))

    assert resp.status_code == 404
    assert await db.sections.find_one({"section_id": victim_section}) is not None
    assert await db.subsections.count_documents({"subsection_id": {"$in": victim["subsection_ids"]}}) == 2
    stored = await db.courses.find_one({"course_id": victim["course_id"]})
    assert stored["course_content"] == [victim_section]


async def test_delete_section_by_non_owner(client, db, settings):
    owner = await make_user(db, "Instructor")
    other = await make_user(db, "Instructor")
    course = await make_course(db, owner, await make_category(db))

    resp = await client.post(f"{API}/deleteSection",
                             json={"section_id": course["course_content"][0], "course_id": course["course_id"]},
                             headers=auth_headers(other, settings))

    assert resp.status_code == 403
    assert await db.sections.find_one({"section_id": course["course_content"][0]}) is not None


async def test_lecture_changes_reject_lecture_from_another_section(client, db, settings, uploader):
    owner = await make_user(db, "Instructor")
    other = await make_user(db, "Instructor")
    category = await make_category(db)
    victim = await make_course(db, owner, category, lectures=(1,))
    own = await make_course(db, other, category, lectures=(1,))
    victim_lecture = victim["subsection_ids"][0]
    headers = auth_headers(other, settings)

    updated = await client.post(
        f"{API}/updateSubSection",
        data={"section_id": own["course_content"][0], "subsection_id": victim_lecture, "title": "Hijacked"},
        files={"video": ("x.mp4", b"v", "video/mp4")},
        headers=headers,
    )
    assert updated.status_code == 404
    assert uploader.uploaded == []

    deleted = await client.post(
        f"{API}/deleteSubSection",
        json={"section_id": own["course_content"][0], "subsection_id": victim_lecture},
        headers=headers,
    )
    assert deleted.status_code == 404

    lecture = await db.subsections.find_one({"subsection_id": victim_lecture})
    assert lecture["title"] == "Lecture 1"
    own_section = await db.sections.find_one({"section_id": own["course_content"][0]})
    assert own_section["subsections"] == own["subsection_ids"]


async def test_lecture_changes_by_non_owner(client, db, settings):
    owner = await make_user(db, "Instructor")
    other = await make_user(db, "Instructor")
    course = await make_course(db, owner, await make_category(db), lectures=(1,))
    section_id = course["course_content"][0]
    lecture = course["subsection_ids"][0]
    headers = auth_headers(other, settings)

    updated = await client.post(f"{API}/updateSubSection",
                                data={"section_id": section_id, "subsection_id": lecture, "title": "Mine"},
                                headers=headers)
    deleted = await client.post(f"{API}/deleteSubSection",
                                json={"section_id": section_id, "subsection_id": lecture},
                                headers=headers)

    assert updated.status_code == 403
    assert deleted.status_code == 403
    assert await db.subsections.find_one({"subsection_id": lecture}) is not None


async def test_add_lecture_uses_detected_duration(client, db, settings, uploader):
    uploader.duration = 61.5
    instructor = await make_user(db, "Instructor")
    course = await make_course(db, instructor, await make_category(db), lectures=(0,))
    section_id = course["course_content"][0]

    resp = await client.post(
        f"{API}/addSubSection",
        data={"section_id": section_id, "title": "Loops", "description": "for/while", "time_duration": "5"},
        files={"video": ("loops.mp4", b"video-bytes", "video/mp4")},
        headers=auth_headers(instructor, settings),
    )
    assert resp.status_code == 200
    lecture = resp.json()["data"]["subsections"][0]
    assert lecture["time_duration"] == "62"
    assert lecture["video_url"] == "https://media.test/loops.mp4"


async def test_add_lecture_falls_back_to_supplied_duration(client, db, settings, uploader):
    uploader.duration = None
    instructor = await make_user(db, "Instructor")
    course = await make_course(db, instructor, await make_category(db), lectures=(0,))

    resp = await client.post(
        f"{API}/addSubSection",
        data={"section_id": course["course_content"][0], "title": "T", "description": "D", "time_duration": "95"},
        files={"video": ("t.mp4", b"v", "video/mp4")},
        headers=auth_headers(instructor, settings),
    )
    assert resp.json()["data"]["subsections"][0]["time_duration"] == "95"


async def test_add_lecture_requires_video(client, db, settings):
    instructor = await make_user(db, "Instructor")
    course = await make_course(db, instructor, await make_category(db), lectures=(0,))
    resp = await client.post(
        f"{API}/addSubSection",
        data={"section_id": course["course_content"][0], "title": "T", "description": "D"},
        headers=auth_headers(instructor, settings),
    )
    assert resp.status_code == 400


async def test_update_and_delete_lecture(client, db, settings):
    instructor = await make_user(db, "Instructor")
    course = await make_course(db, instructor, await make_category(db), lectures=(2,))
    section_id = course["course_content"][0]
    first, second = course["subsection_ids"]
    headers = auth_headers(instructor, settings)

    updated = await client.post(
        f"{API}/updateSubSection",
        data={"section_id": section_id, "subsection_id": first, "title": "Renamed"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["subsections"][0]["title"] == "Renamed"

    deleted = await client.post(
        f"{API}/deleteSubSection",
        json={"section_id": section_id, "subsection_id": first},
        headers=headers,
    )
    assert [s["subsection_id"] for s in deleted.json()["data"]["subsections"]] == [second]
    assert await db.subsections.find_one({"subsection_id": first}) is None


async def test_delete_course_cascades(client, db, settings):
    instructor = await make_user(db, "Instructor")
    student = await make_user(db)
    category = await make_category(db)
    course = await make_course(db, instructor, category)
    course_id = course["course_id"]

    await db.courses.update_one({"course_id": course_id}, {"$push": {"students_enrolled": student["user_id"]}})
    await db.course_progress.insert_one({"progress_id": "PRG_1", "course_id": course_id,
                                         "user_id": student["user_id"], "completed_videos": []})
    await db.users.update_one({"user_id": student["user_id"]},
                              {"$push": {"courses": course_id, "course_progress": "PRG_1"}})

    resp = await client.request("DELETE", f"{API}/deleteCourse", json={"course_id": course_id},
                                headers=auth_headers(instructor, settings))
    assert resp.status_code == 200

    assert await db.courses.find_one({"course_id": course_id}) is None
    assert await db.sections.count_documents({}) == 0
    assert await db.subsections.count_documents({}) == 0
    assert await db.course_progress.count_documents({"course_id": course_id}) == 0
    stored_student = await db.users.find_one({"user_id": student["user_id"]})
    assert stored_student["courses"] == []
    assert stored_student["course_progress"] == []
    assert course_id not in (await db.categories.find_one({"category_id": category["category_id"]}))["courses"]
    assert course_id not in (await db.users.find_one({"user_id": instructor["user_id"]}))["courses"]


async def test_category_page_details(client, db):
    instructor = await make_user(db, "Instructor")
    selected = await make_category(db, name="Web")
    other = await make_category(db, name="Data")
    popular = await make_course(db, instructor, selected, name="Popular")
    await make_course(db, instructor, other, name="Other")
    await db.courses.update_one({"course_id": popular["course_id"]},
                                {"$push": {"students_enrolled": "USR_A"}})

    resp = await client.post(f"{API}/getCategoryPageDetails", json={"category_id": selected["category_id"]})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [c["course_name"] for c in data["selected_category"]["courses"]] == ["Popular"]
    assert data["different_category"]["name"] == "Data"
    assert data["most_selling_courses"][0]["course_name"] == "Popular"


async def test_category_page_details_without_courses(client, db):
    empty = await make_category(db)
    resp = await client.post(f"{API}/getCategoryPageDetails", json={"category_id": empty["category_id"]})
    assert resp.status_code == 404


async def test_show_all_categories(client, db):
    await make_category(db, name="B")
    await make_category(db, name="A")
    resp = await client.get(f"{API}/showAllCategories")
    assert [c["name"] for c in resp.json()["data"]] == ["A", "B"]
