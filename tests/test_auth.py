from smartcia import auth, schemas


class TestAuthenticate:
    def test_known_student(self):
        user = auth.authenticate("222BCAA29", "STUD1")
        assert user == schemas.User(id="222BCAA29", name="Student 222BCAA29", role=schemas.UserRole.STUDENT,
                                    email="222bcaa29@university.edu")

    def test_known_teacher(self):
        user = auth.authenticate("AI26", "TEACH5")
        assert user.role == schemas.UserRole.TEACHER
        assert auth.is_staff(user)

    def test_wrong_password(self):
        assert auth.authenticate("AI26", "TEACH1") is None

    def test_unknown_user(self):
        assert auth.authenticate("nobody", "x") is None


def test_login_sets_and_logout_clears_current_user(repos):
    assert auth.login(repos, "MA26", "bad") is None
    assert repos.get_current_user() is None

    user = auth.login(repos, "MA26", "TEACH2")
    assert repos.get_current_user() == user
    auth.logout(repos)
    assert repos.get_current_user() is None


def test_logout_keeps_another_users_record(repos):
    teacher = auth.login(repos, "AI26", "TEACH5")
    student = auth.authenticate("222BCAA29", "STUD1")
    auth.logout(repos, student)
    assert repos.get_current_user() == teacher
    auth.logout(repos, teacher)
    assert repos.get_current_user() is None


class TestSessionRegistry:
    def test_each_login_gets_its_own_token(self):
        sessions = auth.SessionRegistry()
        student = auth.authenticate("222BCAA29", "STUD1")
        teacher = auth.authenticate("AI26", "TEACH5")
        t1 = sessions.open(student)
        t2 = sessions.open(teacher)
        assert t1 != t2
        assert sessions.get(t1) == student
        assert sessions.get(t2) == teacher

    def test_close(self):
        sessions = auth.SessionRegistry()
        token = sessions.open(auth.authenticate("MA26", "TEACH2"))
        assert sessions.close(token).id == "MA26"
        assert sessions.get(token) is None
        assert sessions.close(token) is None

    def test_missing_token(self):
        sessions = auth.SessionRegistry()
        assert sessions.get(None) is None
        assert sessions.get("") is None
        assert sessions.get("unknown") is None
