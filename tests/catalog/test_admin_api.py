import pytest


NEW_BOOK = {
    "title": "The Hobbit",
    "author": "J.R.R. Tolkien",
    "isbn": "978-0547928227",
    "published_year": 1937,
    "genre": "Fantasy",
    "description": "A glorious account of a magnificent adventure",
}


def test_add_book(client, librarian, headers_for):
    response = client.post("/admin/books/", json=NEW_BOOK, headers=headers_for(librarian))
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "The Hobbit"
    assert data["available"] is True
    assert data["borrower_id"] is None


def test_add_book_forbidden_for_users(client, test_user, headers_for):
    response = client.post("/admin/books/", json=NEW_BOOK, headers=headers_for(test_user))
    assert response.status_code == 403


def test_add_book_invalid_payload(client, admin, headers_for):
    response = client.post(
        "/admin/books/", json={"title": "No author"}, headers=headers_for(admin)
    )
    assert response.status_code == 422


def test_add_book_duplicate_isbn(client, admin, test_book, headers_for):
    payload = dict(NEW_BOOK, isbn=test_book.isbn)
    response = client.post("/admin/books/", json=payload, headers=headers_for(admin))
    assert response.status_code == 409
    assert response.json()["code"] == "isbn_taken"


def test_update_book(client, librarian, test_book, headers_for):
    response = client.put(
        f"/admin/books/{test_book.id}",
        json={"genre": "Political Fiction"},
        headers=headers_for(librarian),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["genre"] == "Political Fiction"
    assert data["title"] == "1984"


def test_update_book_ignores_loan_fields(client, admin, test_book, headers_for):
    response = client.put(
        f"/admin/books/{test_book.id}",
        json={"available": False, "borrower_id": admin.id},
        headers=headers_for(admin),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["available"] is True
    assert data["borrower_id"] is None


def test_update_missing_book(client, admin, headers_for):
    response = client.put("/admin/books/999", json={"title": "x"}, headers=headers_for(admin))
    assert response.status_code == 404


def test_delete_book(client, admin, test_book, headers_for):
    response = client.delete(f"/admin/books/{test_book.id}", headers=headers_for(admin))
    assert response.status_code == 200

    response = client.get(f"/books/{test_book.id}")
    assert response.status_code == 404


def test_delete_book_requires_admin(client, librarian, test_book, headers_for):
    response = client.delete(f"/admin/books/{test_book.id}", headers=headers_for(librarian))
    assert response.status_code == 403


def test_delete_borrowed_book(client, admin, test_user, test_book, headers_for):
    client.post(f"/books/{test_book.id}/borrow", headers=headers_for(test_user))

    response = client.delete(f"/admin/books/{test_book.id}", headers=headers_for(admin))
    assert response.status_code == 409
    assert response.json()["code"] == "book_on_loan"


def test_list_users(client, librarian, test_user, test_book, headers_for):
    client.post(f"/books/{test_book.id}/borrow", headers=headers_for(test_user))

    response = client.get("/admin/users/", headers=headers_for(librarian))
    assert response.status_code == 200
    users = {u["email"]: u for u in response.json()}
    assert users["test@example.com"]["borrowed_books"] == [test_book.id]
    assert users["librarian@example.com"]["role"] == "librarian"


def test_list_users_forbidden_for_users(client, test_user, headers_for):
    response = client.get("/admin/users/", headers=headers_for(test_user))
    assert response.status_code == 403


def test_read_user(client, admin, test_user, headers_for):
    response = client.get(f"/admin/users/{test_user.id}", headers=headers_for(admin))
    assert response.status_code == 200
    assert response.json()["name"] == "Test User"

    response = client.get("/admin/users/999", headers=headers_for(admin))
    assert response.status_code == 404


def test_change_user_role(client, admin, test_user, headers_for):
    response = client.put(
        f"/admin/users/{test_user.id}",
        json={"role": "librarian"},
        headers=headers_for(admin),
    )
    assert response.status_code == 200
    assert response.json()["role"] == "librarian"

    # The new role takes effect on the next request
    response = client.get("/borrow-records/", headers=headers_for(test_user))
    assert response.status_code == 200


def test_change_user_role_invalid(client, admin, test_user, headers_for):
    response = client.put(
        f"/admin/users/{test_user.id}",
        json={"role": "superuser"},
        headers=headers_for(admin),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_role"


def test_change_user_requires_admin(client, librarian, test_user, headers_for):
    response = client.put(
        f"/admin/users/{test_user.id}",
        json={"role": "admin"},
        headers=headers_for(librarian),
    )
    assert response.status_code == 403


def test_reset_user_password(client, admin, test_user, headers_for):
    response = client.put(
        f"/admin/users/{test_user.id}",
        json={"password": "resetpassword"},
        headers=headers_for(admin),
    )
    assert response.status_code == 200
    assert "hashed_password" not in response.json()

    response = client.post(
        "/auth/login", json={"email": "test@example.com", "password": "resetpassword"}
    )
    assert response.status_code == 200
    assert response.json()["id"] == test_user.id


def test_delete_user(client, admin, other_user, headers_for):
    response = client.delete(f"/admin/users/{other_user.id}", headers=headers_for(admin))
    assert response.status_code == 200

    response = client.get(f"/admin/users/{other_user.id}", headers=headers_for(admin))
    assert response.status_code == 404


def test_delete_user_with_borrowed_books(client, admin, test_user, test_book, headers_for):
    client.post(f"/books/{test_book.id}/borrow", headers=headers_for(test_user))

    response = client.delete(f"/admin/users/{test_user.id}", headers=headers_for(admin))
    assert response.status_code == 409
    assert response.json()["code"] == "user_has_loans"


def test_sweep_requires_staff(client, test_user, headers_for):
    response = client.post("/admin/borrow-records/sweep", headers=headers_for(test_user))
    assert response.status_code == 403


def test_sweep_is_idempotent_over_http(client, admin, test_user, test_book, headers_for, clock):
    from datetime import timedelta

    client.post(f"/books/{test_book.id}/borrow", headers=headers_for(test_user))
    clock.now = clock.now + timedelta(days=20)

    first = client.post("/admin/borrow-records/sweep", headers=headers_for(admin)).json()
    second = client.post("/admin/borrow-records/sweep", headers=headers_for(admin)).json()
    assert first["updated_count"] == 1
    assert second["updated_count"] == 0
