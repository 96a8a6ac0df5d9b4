"""
Typed access to the Firestore collections behind the task lists.

Callers never build document paths themselves; every entity has its own
get / create / update / query methods here. Documents come back as plain
dicts with their document id under ``"id"``.
"""
import threading

from google.cloud.firestore import DELETE_FIELD, FieldFilter

LISTS = "taskLists"
TASKS = "tasks"
SUBTASKS = "subtasks"
INVITATIONS = "invitations"
NOTIFICATIONS = "notifications"
USERS = "users"
TODOS = "todos"

# Firestore caps a write batch at 500 operations
BATCH_LIMIT = 450


def _with_id(snapshot):
    if snapshot is None or not snapshot.exists:
        return None
    return {**(snapshot.to_dict() or {}), "id": snapshot.id}


class FirestoreRepository:
    def __init__(self, db):
        self.db = db

    # -------- helpers --------

    def _col(self, name):
        return self.db.collection(name)

    def _get(self, collection, doc_id):
        if not doc_id:
            return None
        return _with_id(self._col(collection).document(doc_id).get())

    def _create(self, collection, data):
        ref = self._col(collection).document()
        ref.set(data)
        return ref.id

    def _update(self, collection, doc_id, patch):
        self._col(collection).document(doc_id).update(patch)

    def _where(self, collection, field, op, value):
        q = self._col(collection).where(filter=FieldFilter(field, op, value))
        return [_with_id(d) for d in q.stream()]

    def _commit_deletes(self, refs):
        refs = list(refs)
        for start in range(0, len(refs), BATCH_LIMIT):
            batch = self.db.batch()
            for ref in refs[start:start + BATCH_LIMIT]:
                batch.delete(ref)
            batch.commit()

    # -------- task lists --------

    def create_list(self, data):
        return self._create(LISTS, data)

    def get_list(self, list_id):
        return self._get(LISTS, list_id)

    def update_list(self, list_id, patch):
        self._update(LISTS, list_id, patch)

    def set_shared_user(self, list_id, user_id, entry):
        self._update(LISTS, list_id, {f"sharedWith.{user_id}": entry, "isShared": True})

    def remove_shared_user(self, list_id, user_id, still_shared):
        self._update(LISTS, list_id, {f"sharedWith.{user_id}": DELETE_FIELD, "isShared": still_shared})

    def lists_owned_by(self, user_id):
        return self._where(LISTS, "ownerId", "==", user_id)

    def lists_shared_with(self, user_id):
        return self._where(LISTS, f"sharedWith.{user_id}.permission", "in", ["view", "edit"])

    def delete_list_cascade(self, list_id, purge_invitations=True):
        """Delete a list with its tasks and their subtasks, in batches.

        Batches are not atomic across each other; an interrupted cascade can
        leave orphaned subtasks behind.
        """
        refs = [self._col(LISTS).document(list_id)]
        task_ids = [t["id"] for t in self.tasks_for_list(list_id)]
        subtask_count = 0
        for task_id in task_ids:
            refs.append(self._col(TASKS).document(task_id))
            for s in self.subtasks_for_task(task_id):
                refs.append(self._col(SUBTASKS).document(s["id"]))
                subtask_count += 1
        invitation_count = 0
        if purge_invitations:
            for inv in self.invitations_for_list(list_id):
                refs.append(self._col(INVITATIONS).document(inv["id"]))
                invitation_count += 1
        self._commit_deletes(refs)
        return {"tasks": len(task_ids), "subtasks": subtask_count, "invitations": invitation_count}

    # -------- tasks --------

    def create_task(self, data):
        return self._create(TASKS, data)

    def get_task(self, task_id):
        return self._get(TASKS, task_id)

    def update_task(self, task_id, patch):
        self._update(TASKS, task_id, patch)

    def tasks_for_list(self, list_id):
        return self._where(TASKS, "listId", "==", list_id)

    def recurring_tasks(self):
        return self._where(TASKS, "isRecurring", "==", True)

    def delete_task_cascade(self, task_id):
        refs = [self._col(TASKS).document(task_id)]
        subtasks = self.subtasks_for_task(task_id)
        refs.extend(self._col(SUBTASKS).document(s["id"]) for s in subtasks)
        self._commit_deletes(refs)
        return len(subtasks)

    # -------- subtasks --------

    def create_subtask(self, data):
        return self._create(SUBTASKS, data)

    def get_subtask(self, subtask_id):
        return self._get(SUBTASKS, subtask_id)

    def update_subtask(self, subtask_id, patch):
        self._update(SUBTASKS, subtask_id, patch)

    def delete_subtask(self, subtask_id):
        self._col(SUBTASKS).document(subtask_id).delete()

    def subtasks_for_task(self, task_id):
        return self._where(SUBTASKS, "taskId", "==", task_id)

    # -------- invitations --------

    def create_invitation(self, data):
        """Store an invitation whose token is its document id."""
        ref = self._col(INVITATIONS).document()
        ref.set({**data, "token": ref.id})
        return ref.id

    def get_invitation(self, token):
        return self._get(INVITATIONS, token)

    def update_invitation(self, token, patch):
        self._update(INVITATIONS, token, patch)

    def delete_invitation(self, token):
        self._col(INVITATIONS).document(token).delete()

    def invitations_for_list(self, list_id):
        return self._where(INVITATIONS, "listId", "==", list_id)

    # -------- notifications --------

    def add_notification(self, data):
        return self._create(NOTIFICATIONS, data)

    def get_notification(self, notification_id):
        return self._get(NOTIFICATIONS, notification_id)

    def update_notification(self, notification_id, patch):
        self._update(NOTIFICATIONS, notification_id, patch)

    def notifications_for_user(self, user_id):
        return self._where(NOTIFICATIONS, "userId", "==", user_id)

    # -------- users --------

    def get_user(self, user_id):
        return self._get(USERS, user_id)

    def save_user(self, user_id, data):
        self._col(USERS).document(user_id).set(data, merge=True)

    def find_user_by_email(self, email):
        """Linear scan over every profile; there is no email index."""
        wanted = (email or "").strip().lower()
        for doc in self._col(USERS).stream():
            data = doc.to_dict() or {}
            if (data.get("email") or "").strip().lower() == wanted:
                return {**data, "id": doc.id}
        return None

    # -------- legacy todos --------

    def list_todos(self):
        return [_with_id(d) for d in self._col(TODOS).stream()]

    def create_todo(self, data):
        return self._create(TODOS, data)

    def get_todo(self, todo_id):
        return self._get(TODOS, todo_id)

    def update_todo(self, todo_id, patch):
        self._update(TODOS, todo_id, patch)

    def delete_todo(self, todo_id):
        self._col(TODOS).document(todo_id).delete()

    # -------- live subscriptions --------

    def watch_tasks(self, list_id, callback):
        """Call ``callback(tasks)`` with the list's tasks now and on every change.

        Returns a function that stops the subscription.
        """
        query = self._col(TASKS).where(filter=FieldFilter("listId", "==", list_id))

        def on_snapshot(docs, changes, read_time):
            callback([_with_id(d) for d in docs])

        watch = query.on_snapshot(on_snapshot)
        return watch.unsubscribe

    def watch_lists_for_user(self, user_id, callback):
        """Push the merged owned and shared lists whenever either side changes."""
        state = {"owned": [], "shared": []}
        # each query delivers snapshots on its own thread
        lock = threading.Lock()

        def push(key):
            def on_snapshot(docs, changes, read_time):
                with lock:
                    state[key] = [_with_id(d) for d in docs]
                    merged = {l["id"]: l for l in state["owned"] + state["shared"]}
                    callback(list(merged.values()))
            return on_snapshot

        owned = self._col(LISTS).where(filter=FieldFilter("ownerId", "==", user_id))
        shared = self._col(LISTS).where(
            filter=FieldFilter(f"sharedWith.{user_id}.permission", "in", ["view", "edit"])
        )
        watches = [owned.on_snapshot(push("owned")), shared.on_snapshot(push("shared"))]

        def unsubscribe():
            for w in watches:
                w.unsubscribe()
        return unsubscribe
