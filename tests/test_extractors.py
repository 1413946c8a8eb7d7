"""Tests for source-fact extractors."""

import textwrap

import pytest

from context_bridge.continuity.extractors import (
    BackendLexicalExtractor,
    ExtractorRegistry,
    LexicalExtractor,
    PythonExtractor,
    SourceFactExtractor,
)
from context_bridge.models import SourceFacts


def src(text):
    return textwrap.dedent(text).lstrip("\n")


@pytest.fixture
def lexical():
    return LexicalExtractor()


@pytest.fixture
def python():
    return PythonExtractor()


class TestRegistry:
    def test_builtin_languages(self):
        languages = ExtractorRegistry.list_languages()

        assert {"javascript", "python", "backend"} <= set(languages)

    def test_lookup_by_extension(self):
        assert isinstance(ExtractorRegistry.get_extractor("src/App.TSX"), LexicalExtractor)
        assert isinstance(ExtractorRegistry.get_extractor("api/main.py"), PythonExtractor)
        assert isinstance(ExtractorRegistry.get_extractor("Routes.java"), BackendLexicalExtractor)
        assert ExtractorRegistry.get_extractor("README.md") is None

    def test_instances_are_reused(self):
        assert ExtractorRegistry.get_extractor("a.js") is ExtractorRegistry.get_extractor("b.jsx")

    def test_register_new_language(self):
        @ExtractorRegistry.register("templating-test", ["tmpltest"])
        class TemplateExtractor(SourceFactExtractor):
            def extract(self, source, file):
                return SourceFacts(declared_routes=[source.strip()])

        try:
            assert ExtractorRegistry.list_extensions()[".tmpltest"] == "templating-test"
            extractor = ExtractorRegistry.get_extractor("page.tmpltest")
            assert extractor.extract("/home\n", "page.tmpltest").declared_routes == ["/home"]
        finally:
            ExtractorRegistry._extractor_classes.pop("templating-test", None)
            ExtractorRegistry._extension_map.pop(".tmpltest", None)
            ExtractorRegistry._instances.pop("templating-test", None)


class TestLexicalCalls:
    def test_fetch_defaults_to_get(self, lexical):
        facts = lexical.extract("const r = await fetch('/api/products');\n", "src/a.js")

        assert [(c.method, c.path, c.line) for c in facts.calls] == [("GET", "/api/products", 1)]

    def test_fetch_with_method(self, lexical):
        facts = lexical.extract(
            "fetch(`/api/orders`, { method: 'post', body })\n",
            "src/a.js",
        )

        assert [(c.method, c.path) for c in facts.calls] == [("POST", "/api/orders")]

    def test_client_calls(self, lexical):
        facts = lexical.extract(src("""
            axios.post('/api/orders', order);
            api.delete("/api/items/1");
            this.api.get('/ignored');
            prefetch('/not-a-call');
        """), "src/a.ts")

        assert [(c.method, c.path, c.line) for c in facts.calls] == [
            ("POST", "/api/orders", 1),
            ("DELETE", "/api/items/1", 2),
        ]


class TestLexicalRoutes:
    def test_express_routes(self, lexical):
        facts = lexical.extract(src("""
            const router = express.Router();
            app.get('/api/products', listProducts);
            router.post("/api/orders", createOrder);
        """), "server.js")

        assert [(r.method, r.path, r.line) for r in facts.routes] == [
            ("GET", "/api/products", 2),
            ("POST", "/api/orders", 3),
        ]

    def test_route_decorator_with_methods(self):
        facts = BackendLexicalExtractor().extract(
            "@app.route('/items', methods=['GET', 'POST'])\n",
            "app.rb",
        )

        assert [(r.method, r.path) for r in facts.routes] == [("GET", "/items"), ("POST", "/items")]

    def test_backend_extractor_only_routes(self):
        facts = BackendLexicalExtractor().extract(
            "<?php $app->get('/x'); fetch('/api/y'); router.get('/api/z', h);\n",
            "index.php",
        )

        assert [(r.method, r.path) for r in facts.routes] == [("GET", "/api/z")]
        assert facts.calls == []


class TestLexicalComponents:
    def test_definitions(self, lexical):
        facts = lexical.extract(src("""
            export function UserCard(props) {
            const ProductList = () => {
            const Nav: React.FC<NavProps> = (props) => {
            class Header extends React.Component {
            function helper() {
        """), "src/components.tsx")

        assert [(c.name, c.line) for c in facts.components] == [
            ("UserCard", 1),
            ("ProductList", 2),
            ("Nav", 3),
            ("Header", 4),
        ]

    def test_usages(self, lexical):
        facts = lexical.extract(src("""
            return (
              <Layout>
                <UserCard user={u} /><div />
                <Array<Item>>
              </Layout>
            );
        """), "src/App.jsx")

        assert [(u.name, u.line) for u in facts.usages] == [("Layout", 2), ("UserCard", 3)]

    def test_generic_type_parameters_are_not_usages(self, lexical):
        source = src("""
            const identity = <T>(x: T) => x;
            const items = <Item[]>raw;
        """)

        assert lexical.extract(source, "src/util.ts").usages == []
        assert lexical.extract("const first = <T>(xs: T[]) => xs[0];\n", "src/util.tsx").usages == []

    def test_vue_single_file_component(self, lexical):
        facts = lexical.extract(src("""
            <template><div /></template>
            <script>
            export default {
              name: 'product-tile',
            }
            </script>
        """), "src/components/ProductTile.vue")

        assert [(c.name, c.line) for c in facts.components] == [
            ("product-tile", 4),
            ("ProductTile", 1),
        ]


class TestLexicalNavigation:
    def test_navigation_targets(self, lexical):
        facts = lexical.extract(src("""
            navigate('/dashboard');
            router.push("/settings");
            history.replace(`/login`);
        """), "src/nav.js")

        assert [(n.route, n.line) for n in facts.navigations] == [
            ("/dashboard", 1),
            ("/settings", 2),
            ("/login", 3),
        ]

    def test_declared_routes(self, lexical):
        facts = lexical.extract(src("""
            const routes = [
              { path: '/dashboard', element: <Dashboard /> },
              <Route path="/settings" element={<Settings />} />,
            ];
        """), "src/routes.jsx")

        assert facts.declared_routes == ["/dashboard", "/settings"]


class TestLexicalAuthAndModels:
    def test_auth_call(self, lexical):
        facts = lexical.extract(src("""
            const authorName = 'Bob';
            await fetch('/api/auth/login', { method: 'POST' });
            const label = 'Login';
        """), "src/login.js")

        assert [(a.endpoint, a.line) for a in facts.auth_calls] == [("/api/auth/login", 2)]

    def test_mongoose_and_sequelize_models(self, lexical):
        facts = lexical.extract(src("""
            module.exports = mongoose.model('User', userSchema);
            const Order = sequelize.define("Order", {});
        """), "models/index.js")

        assert [(m.name, m.line) for m in facts.models] == [("User", 1), ("Order", 2)]


class TestPythonRoutes:
    def test_fastapi_and_flask_routes(self, python):
        facts = python.extract(src('''
            from fastapi import FastAPI

            app = FastAPI()


            @app.get("/api/products")
            async def list_products():
                """List all products.

                Paginated.
                """
                return []


            @router.api_route("/api/orders", methods=["GET", "POST"])
            def orders():
                pass


            @bp.route("/legacy")
            def legacy():
                pass


            @pytest.fixture("not-a-route")
            def other():
                pass
        '''), "api/main.py")

        assert [(r.method, r.path, r.line, r.description) for r in facts.routes] == [
            ("GET", "/api/products", 6, "List all products."),
            ("GET", "/api/orders", 15, None),
            ("POST", "/api/orders", 15, None),
            ("GET", "/legacy", 20, None),
        ]

    def test_syntax_error_falls_back_to_regex(self, python):
        facts = python.extract(src("""
            @app.route("/broken", methods=["POST"])
            def broken(:
        """), "api/broken.py")

        assert [(r.method, r.path, r.line) for r in facts.routes] == [("POST", "/broken", 1)]


class TestPythonModels:
    def test_sqlalchemy(self, python):
        facts = python.extract(src("""
            class Base(DeclarativeBase):
                pass


            class User(Base):
                __tablename__ = "users"

                id: Mapped[int] = mapped_column(primary_key=True)
                email = Column(String(255), unique=True)
                orders = relationship("Order")
                _cache = None
        """), "models/user.py")

        assert len(facts.models) == 1
        model = facts.models[0]
        assert model.name == "User"
        assert model.table == "users"
        assert model.line == 5
        assert model.fields == (("id", "int"), ("email", "String"))

    def test_django(self, python):
        facts = python.extract(src("""
            from django.db import models


            class Post(models.Model):
                title = models.CharField(max_length=100)
                author = models.ForeignKey(User, on_delete=models.CASCADE)

                def __str__(self):
                    return self.title
        """), "blog/models.py")

        assert [(m.name, m.fields, m.table) for m in facts.models] == [
            ("Post", (("title", "CharField"), ("author", "ForeignKey")), None),
        ]

    def test_sqlmodel_requires_table_flag(self, python):
        facts = python.extract(src("""
            class Hero(SQLModel, table=True):
                id: int | None = Field(default=None, primary_key=True)
                name: str


            class HeroCreate(SQLModel):
                name: str
        """), "models/hero.py")

        assert [(m.name, m.fields) for m in facts.models] == [
            ("Hero", (("id", "int | None"), ("name", "str"))),
        ]

    def test_plain_classes_are_not_models(self, python):
        facts = python.extract(src("""
            class Item(BaseModel):
                name: str


            class Service:
                pass
        """), "schemas.py")

        assert facts.models == []
