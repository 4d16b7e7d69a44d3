import json
import os
import re
import shutil
import subprocess
from typing import Dict, List, Optional

import demjson3 as demjson
from bson import json_util


class ShellQueryError(RuntimeError):
    """The MongoDB shell could not connect or the query failed."""


# Shell-only literals in legacy printjson output, rewritten into plain JSON
SPECIAL_TYPES = [
    (r'ObjectId\(\s*["\']?([^)"\']*)["\']?\s*\)', r'"ObjectId(\1)"'),
    (r'ISODate\(\s*["\']?([^)"\']*)["\']?\s*\)', r'"ISODate(\1)"'),
    (r'NumberLong\(\s*["\']?([^)"\']*)["\']?\s*\)', r'\1'),
    (r'NumberDecimal\(\s*["\']?([^)"\']*)["\']?\s*\)', r'\1'),
    (r'Timestamp\(([^)]+)\)', r'"Timestamp(\1)"'),
    (r'BinData\(([^)]+)\)', r'"BinData(\1)"'),
    (r'DBRef\(([^)]+)\)', r'"DBRef(\1)"'),
    (r'NumberInt\(\s*["\']?([^)"\']*)["\']?\s*\)', r'\1'),
    (r'(?<![\w"])Date\(\s*["\']?([^)"\']*)["\']?\s*\)', r'"Date(\1)"'),
]


class MongoShellExecutor:
    def __init__(self, connection_string: str = "mongodb://localhost:27017", mongosh_path: Optional[str] = None,
                 timeout: int = 30):
        self.connection_string = connection_string
        self.mongosh_path = mongosh_path or self._get_mongosh_path()
        self.timeout = timeout

    def _get_mongosh_path(self) -> str:
        """Find a mongosh/mongo executable: MONGOSH_PATH, then PATH, then common install paths."""
        env_path = os.environ.get("MONGOSH_PATH")
        if env_path and os.path.exists(env_path):
            print(f"Using mongosh from MONGOSH_PATH: {env_path}")
            return env_path

        for binary in ("mongosh", "mongo"):
            p = shutil.which(binary)
            if p:
                print(f"Using MongoDB shell from PATH: {p}")
                return p

        common_paths = [
            "/opt/homebrew/bin/mongosh",
            "/usr/local/bin/mongosh",
            "/usr/bin/mongosh",
            r"C:\Program Files\MongoDB\Server\7.0\bin\mongosh.exe",
            r"C:\Program Files\MongoDB\Server\6.0\bin\mongosh.exe",
        ]
        for p in common_paths:
            if os.path.exists(p):
                print(f"Found MongoDB shell at: {p}")
                return p

        raise FileNotFoundError("Could not find 'mongosh' or 'mongo'. Install the MongoDB shell, "
                                "add it to PATH or set MONGOSH_PATH.")

    def _format_query(self, query: str) -> str:
        query = query.strip().rstrip(';')
        if ('.find(' in query or '.aggregate(' in query) and '.toArray()' not in query:
            query += '.toArray()'
        return query

    def _run(self, js_command: str, timeout: int) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.mongosh_path, "--quiet", "--eval", js_command],
                capture_output=True,
                text=True,
                timeout=timeout,
                encoding='utf-8',
                errors='replace',
            )
        except subprocess.TimeoutExpired as e:
            raise ShellQueryError(f"Query Timeout (>{timeout} seconds)") from e

    def test_connection(self):
        """Connect once and raise ShellQueryError if the server is unreachable"""
        print(f"Trying to connect to MongoDB: {self.connection_string}")
        js_command = f'''
            try {{
                db = connect({json.dumps(self.connection_string)});
                print("CONNECTION_SUCCESS");
            }} catch (e) {{
                print("CONNECTION_ERROR: " + e.message);
                quit(1);
            }}
        '''
        result = self._run(js_command, timeout=min(self.timeout, 10))
        if result.stderr:
            raise ShellQueryError(f"MongoDB Connection Error: {result.stderr.strip()}")
        if "CONNECTION_SUCCESS" not in (result.stdout or ""):
            raise ShellQueryError(f"MongoDB Connection Failed: {(result.stdout or '').strip()}")
        print("MongoDB connection test successful")

    def _parse_output(self, output: str) -> List[Dict]:
        try:
            # EJSON.stringify output: $oid/$date wrappers decode to BSON types
            data = json_util.loads(output)
        except json.JSONDecodeError:
            data = self._parse_legacy_output(output)
        if not isinstance(data, list):
            data = [data]
        return data

    def _parse_legacy_output(self, output: str):
        """printjson-style output: shell literals, unquoted keys and single quotes"""
        for pattern, replacement in SPECIAL_TYPES:
            output = re.sub(pattern, replacement, output)
        try:
            return json.loads(output)
        except json.JSONDecodeError:
            try:
                return demjson.decode(output)
            except demjson.JSONDecodeError as e:
                raise ShellQueryError(f"Error transforming shell output into JSON: {e}") from e

    def execute_query(self, db_name: str, query: str) -> List[Dict]:
        formatted_query = self._format_query(query)
        js_command = f'''
            try {{
                db = connect({json.dumps(self.connection_string)}).getSiblingDB({json.dumps(db_name)});
                result = {formatted_query};
                print(EJSON.stringify(result, null, 0, {{relaxed: true}}));
            }} catch (e) {{
                print("QUERY_ERROR: " + e.message);
                quit(1);
            }}
        '''
        result = self._run(js_command, timeout=self.timeout)

        output = (result.stdout or "").strip()
        if "QUERY_ERROR" in output:
            raise ShellQueryError(output)
        if result.returncode != 0 or result.stderr:
            raise ShellQueryError(f"Query error: {(result.stderr or output).strip()}")
        if not output:
            return []
        return self._parse_output(output)
